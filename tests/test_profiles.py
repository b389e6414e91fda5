"""Tests for radial and astronomical profiles."""

import pytest
import numpy as np

from py_imgen.core.buffer_store import BufferStore
from py_imgen.core.profiles import (
    EGalaxyOptions,
    make_2axis_gauss,
    make_cosapo_edge_pupil,
    make_egalaxy,
    make_ez_disk,
    make_fiber_coupling_overlap,
    make_galaxy,
    make_gauss,
    make_offset_hypergaussian,
    make_psf_from_profile,
)


@pytest.fixture
def store():
    return BufferStore()


class TestGaussians:
    """Test gaussian spots."""

    def test_gauss_peak_and_width(self, store):
        """Test amplitude at the centre and 1/e at distance a."""
        image = make_gauss(store, "g", 64, 64, 5.0, 3.0)

        assert image.data[32, 32] == pytest.approx(3.0)
        assert image.data[32, 37] == pytest.approx(3.0 / np.e, rel=1e-5)
        assert np.unravel_index(np.argmax(image.data), image.data.shape) == (32, 32)

    def test_2axis_gauss_round_when_not_elliptic(self, store):
        """Test that zero ellipticity reproduces the circular gaussian."""
        round_ = make_gauss(store, "g", 32, 32, 4.0, 1.0)
        elliptic = make_2axis_gauss(store, "g2", 32, 32, 4.0, 1.0, 0.0, 0.7)

        np.testing.assert_allclose(round_.data, elliptic.data, atol=1e-6)

    def test_2axis_gauss_stretches_minor_axis(self, store):
        """Test that positive ellipticity widens the profile along y at PA 0."""
        image = make_2axis_gauss(store, "g2", 32, 32, 4.0, 1.0, 1.0, 0.0)

        assert image.data[20, 16] > image.data[16, 20]


class TestGalaxies:
    """Test galaxy models."""

    def test_galaxy_peak_and_symmetry(self, store):
        """Test that the galaxy peaks at the centre and is point symmetric."""
        image = make_galaxy(store, "gal", 65, 65, 6.0, 1.0, 0.3, 0.4, 3.0, 0.5, 0.2, 0.4)
        data = image.data

        assert np.unravel_index(np.argmax(data), data.shape) == (32, 32)
        np.testing.assert_allclose(data, data[::-1, ::-1], rtol=1e-5)

    def test_galaxy_invalid_radius(self, store):
        """Test that non-positive radii are rejected."""
        with pytest.raises(ValueError):
            make_galaxy(store, "gal", 16, 16, 0.0, 1.0, 0.0, 0.0, 1.0, 1.0, 0.0, 0.0)

    def test_egalaxy_defaults(self, store):
        """Test the default elliptical galaxy."""
        image = make_egalaxy(store, "eg", 64, 64)

        assert image.data[32, 32] == pytest.approx(1.0)
        assert image.data.min() > 0.0

    def test_egalaxy_central_half(self, store):
        """Test that central_half leaves the outer frame empty."""
        image = make_egalaxy(store, "eg", 64, 64, EGalaxyOptions(central_half=True, size=1.0))

        assert np.all(image.data[:16, :] == 0.0)
        assert np.all(image.data[:, 48:] == 0.0)
        assert np.all(image.data[16:48, 16:48] > 0.0)

    def test_egalaxy_eccentricity_bound(self):
        """Test that eccentricity must stay below 1."""
        with pytest.raises(ValueError):
            EGalaxyOptions(eccentricity=1.0)


class TestDiskProfiles:
    """Test disk and pupil-edge profiles."""

    def test_ez_disk(self, store):
        """Test the inner hole and the power law outside it."""
        image = make_ez_disk(store, "ez", 64, 5.0, 2.0, 0.0)
        background = 6.0 ** -2.0

        assert image.data[32, 32] == pytest.approx(background)
        # pixel (42, 32) sits at x = 10.5, y = 0.5
        r = np.hypot(10.5, 0.5)
        assert image.data[32, 42] == pytest.approx(r ** -2.0 + background, rel=1e-6)

    def test_ez_disk_inclination_brightens(self, store):
        """Test that inclination scales the disk by 1/cos(i)."""
        flat = make_ez_disk(store, "ez0", 64, 5.0, 2.0, 0.0)
        tilted = make_ez_disk(store, "ez1", 64, 5.0, 2.0, np.pi / 3)

        assert tilted.data[32, 42] > flat.data[32, 42]

    def test_offset_hypergaussian(self, store):
        """Test zero inside the offset radius and 1 - 1/e at a + b."""
        image = make_offset_hypergaussian(store, "hg", 64, 10.0, 5.0, 2)

        assert image.data[32, 32] == 0.0
        assert image.data[32, 47] == pytest.approx(1.0 - np.exp(-1.0), rel=1e-6)
        assert image.data[32, 63] > 0.99

    def test_cosapo_edge_pupil(self, store):
        """Test the raised-cosine edge."""
        image = make_cosapo_edge_pupil(store, "apo", 64, 10.0, 20.0)

        assert image.data[32, 32] == 1.0
        assert image.data[32, 47] == pytest.approx(0.5, abs=1e-6)
        assert image.data[32, 53] == 0.0

    def test_cosapo_needs_ordered_radii(self, store):
        """Test that the outer radius must exceed the inner one."""
        with pytest.raises(ValueError):
            make_cosapo_edge_pupil(store, "apo", 16, 5.0, 5.0)


class TestPsfFromProfile:
    """Test tabulated radial profiles."""

    def test_interpolation(self, store):
        """Test linear interpolation between samples."""
        image = make_psf_from_profile(store, "psf", 32, 32, [0.0, 4.0, 8.0], [1.0, 0.5, 0.0])

        assert image.data[16, 16] == pytest.approx(1.0)
        assert image.data[16, 18] == pytest.approx(0.75)
        assert image.data[16, 22] == pytest.approx(0.25)

    def test_extrapolates_last_segment(self, store):
        """Test that radii beyond the table follow the last slope."""
        image = make_psf_from_profile(store, "psf", 32, 32, [0.0, 4.0, 8.0], [1.0, 0.5, 0.0])

        assert image.data[16, 26] == pytest.approx(-0.25)

    def test_first_value_inside_first_sample(self, store):
        """Test that radii below the first sample take the first value."""
        image = make_psf_from_profile(store, "psf", 16, 16, [2.0, 4.0], [3.0, 1.0])

        assert image.data[8, 9] == pytest.approx(3.0)

    def test_unsorted_profile(self, store):
        """Test that non-increasing distances are rejected."""
        with pytest.raises(ValueError):
            make_psf_from_profile(store, "psf", 8, 8, [0.0, 2.0, 1.0], [1.0, 0.5, 0.2])


class TestFiberCoupling:
    """Test the fiber coupling overlap map."""

    def test_matches_direct_sum(self, store):
        """Test one pixel against the explicit overlap integral."""
        image = make_fiber_coupling_overlap(store, "fco", 32)
        size, puprad = 32, 3.2

        coords = (np.arange(size) - 0.5 * size) / puprad
        v, u = np.meshgrid(coords, coords, indexing="ij")
        tem00 = np.exp(-(u * u + v * v))
        tem00 /= np.sqrt(np.sum(tem00 ** 2))
        r = np.hypot(u - 1.32, v)
        annulus = (r > 0.3) & (r < 1.0)

        ii, jj = 20, 11
        ttx = (ii - 0.5 * size) * 0.2
        tty = (jj - 0.5 * size) * 0.2
        phase = u * ttx + v * tty
        total = np.sum(tem00 * annulus * np.exp(1j * phase))
        expected = abs(total) ** 2 / np.sqrt(np.count_nonzero(annulus))

        assert image.data[jj, ii] == pytest.approx(expected, rel=1e-4)

    def test_default_size(self, store):
        """Test the 128 x 128 default map."""
        image = make_fiber_coupling_overlap(store, "fco")

        assert image.data.shape == (128, 128)
        assert np.all(np.isfinite(image.data))
        assert image.data.min() >= 0.0
