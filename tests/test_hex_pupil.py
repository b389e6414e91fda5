"""Tests for the hexagonal segmented pupil builder."""

import pytest
import numpy as np
from pydantic import ValidationError

from py_imgen.core.buffer_store import BufferStore
from py_imgen.core.errors import DegenerateGeometryError, MaskLevelFileError
from py_imgen.core.hex_pupil import (
    HexPupilOptions,
    build_hex_pupil,
    hex_lattice,
    make_hexagon,
    render_hexagon,
    segments_to_wavefront_modes,
)
from py_imgen.core.hex_vector_export import HexVectorExportOptions, level_digit, load_mask_levels
from py_imgen.core.rng import NumpyRandom


@pytest.fixture
def store():
    return BufferStore()


@pytest.fixture
def small_pupil(store):
    """A 256 px pupil with influence functions."""
    return build_hex_pupil(store, "pup", 256, 100.0, 2.0, 20.0)


class TestHexagon:
    """Test the single-hexagon rasterizer."""

    def test_area(self):
        """Test that the pixel count is close to 2 sqrt(3) R^2."""
        image = render_hexagon(np.zeros((96, 96)), 48.0, 48.0, 20.0)

        assert image.sum() == pytest.approx(2.0 * np.sqrt(3.0) * 400.0, rel=0.03)

    def test_flat_top_and_pointy_sides(self):
        """Test that flat edges sit at the inradius and vertices along x."""
        image = render_hexagon(np.zeros((96, 96)), 48.0, 48.0, 20.0)

        assert image[48 + 20, 48] == 1.0
        assert image[48 + 21, 48] == 0.0
        assert image[48, 48 + 22] == 1.0
        assert image[48, 48 + 24] == 0.0

    def test_make_hexagon(self, store):
        """Test that the store wrapper is symmetric about its centre."""
        image = make_hexagon(store, "hex", 64, 64, 32.0, 32.0, 12.0)

        assert "hex" in store
        np.testing.assert_array_equal(image.data[16:49, 16:49], image.data[16:49, 16:49][::-1, ::-1])


class TestLattice:
    """Test candidate centre generation."""

    def test_candidates_inside_radius(self):
        """Test that every candidate lies strictly inside the radius."""
        centers = hex_lattice(256, 100.0, 20.0)

        assert len(centers) > 0
        assert np.all(np.hypot(centers[:, 0], centers[:, 1]) < 100.0)

    def test_includes_origin_and_shifted_neighbour(self):
        """Test that the lattice holds the origin followed by its shifted partner."""
        centers = hex_lattice(256, 100.0, 20.0)
        origin = np.flatnonzero(np.all(centers == 0.0, axis=1))[0]

        assert centers[origin + 1] == pytest.approx([30.0, np.sqrt(3.0) * 10.0])


class TestBuildHexPupil:
    """Test pupil tiling and segment numbering."""

    def test_large_pupil_is_deterministic(self):
        """Test the 4096 px configuration: ids 1..N, repeatable count."""
        options = HexPupilOptions(influence_functions=False)
        first = build_hex_pupil(BufferStore(), "pup", 4096, 200.0, 2.0, 46.3, options)
        second = build_hex_pupil(BufferStore(), "pup", 4096, 200.0, 2.0, 46.3, options)

        n = first.segment_count
        assert n > 0
        assert second.segment_count == n
        assert first.influence is None

        values = np.unique(first.pupil.data)
        np.testing.assert_array_equal(values, np.arange(n + 1))
        np.testing.assert_array_equal(first.pupil.data, second.pupil.data)

    def test_segments_inside_aperture(self, small_pupil):
        """Test that no segment pixel lies outside the pupil radius."""
        jj, ii = np.mgrid[0:256, 0:256]
        outside = np.hypot(ii - 128, jj - 128) >= 100.0

        assert np.all(small_pupil.pupil.data[outside] == 0)

    def test_segment_records(self, small_pupil):
        """Test that records are numbered in order and count claimed pixels."""
        pupil = small_pupil.pupil.data

        assert [s.index for s in small_pupil.segments] == list(range(1, small_pupil.segment_count + 1))
        for segment in small_pupil.segments:
            assert segment.pixel_count == np.count_nonzero(pupil == segment.index)
        assert sum(s.pixel_count for s in small_pupil.segments) == np.count_nonzero(pupil)

    def test_first_segment_keeps_overlap(self, store):
        """Test that overlapping hexagons leave shared pixels to the earlier id."""
        result = build_hex_pupil(
            store, "pup", 256, 100.0, -6.0, 20.0, HexPupilOptions(influence_functions=False)
        )
        pupil = result.pupil.data

        assert np.all(pupil == np.rint(pupil))
        assert sum(s.pixel_count for s in result.segments) == np.count_nonzero(pupil)

    @pytest.mark.parametrize("size,step", [(0, 20.0), (256, 0.0), (256, -1.0)])
    def test_invalid_geometry(self, store, size, step):
        """Test that non-positive size or step is rejected."""
        with pytest.raises(ValueError):
            build_hex_pupil(store, "pup", size, 100.0, 2.0, step)


class TestInfluenceFunctions:
    """Test the piston/tip/tilt cube."""

    def test_cube_shape(self, small_pupil):
        """Test that the cube holds three planes per segment."""
        n = small_pupil.segment_count

        assert small_pupil.influence.data.shape == (3 * n, 256, 256)
        assert small_pupil.influence.name == "hexpupif"

    def test_planes(self, small_pupil):
        """Test piston support, zero-mean tilts and their normalization."""
        pupil = small_pupil.pupil.data
        cube = small_pupil.influence.data

        for segment in small_pupil.segments:
            k = 3 * (segment.index - 1)
            mask = pupil == segment.index
            count = np.count_nonzero(mask)

            np.testing.assert_array_equal(cube[k] != 0, mask)
            assert np.all(cube[k][mask] == 1.0)
            for plane in (cube[k + 1], cube[k + 2]):
                assert np.all(plane[~mask] == 0.0)
                assert plane[mask].sum() == pytest.approx(0.0, abs=1e-2)
                assert np.sum(plane[mask].astype(np.float64) ** 2) == pytest.approx(count, rel=1e-4)

    def test_centroids(self, small_pupil):
        """Test that centroids are pixel means of each segment."""
        pupil = small_pupil.pupil.data
        jj, ii = np.mgrid[0:256, 0:256]

        for segment in small_pupil.segments:
            mask = pupil == segment.index
            assert segment.centroid_x == pytest.approx(ii[mask].mean())
            assert segment.centroid_y == pytest.approx(jj[mask].mean())
            assert segment.rms_x > 0 and segment.rms_y > 0

    def test_degenerate_segments_raise(self, store):
        """Test that vanishing segments fail and leave no partial buffers."""
        with pytest.raises(DegenerateGeometryError):
            build_hex_pupil(store, "pup", 256, 100.0, 19.99, 20.0)

        assert "pup" not in store
        assert "hexpupif" not in store


class TestPiston:
    """Test the piston-error phase map."""

    def test_random_piston_constant_per_segment(self, store):
        """Test that each segment carries one piston within +-amplitude."""
        options = HexPupilOptions(influence_functions=False, piston_amplitude=0.5)
        result = build_hex_pupil(store, "pup", 256, 100.0, 2.0, 20.0, options, rng=NumpyRandom(3))
        pupil = result.pupil.data
        phase = result.phase.data

        assert result.phase.name == "hexpupPha"
        assert np.all(phase[pupil == 0] == 0.0)
        assert np.all(np.abs(phase) <= 0.5)
        for segment in result.segments:
            values = np.unique(phase[pupil == segment.index])
            assert len(values) == 1

    def test_seeded_piston_is_reproducible(self):
        """Test that the same seed gives the same phase map."""
        options = HexPupilOptions(influence_functions=False, piston_amplitude=1.0)
        first = build_hex_pupil(BufferStore(), "pup", 256, 100.0, 2.0, 20.0, options, NumpyRandom(7))
        second = build_hex_pupil(BufferStore(), "pup", 256, 100.0, 2.0, 20.0, options, NumpyRandom(7))

        np.testing.assert_array_equal(first.phase.data, second.phase.data)

    def test_targeted_piston(self, store):
        """Test that only the selected segment gets the amplitude."""
        options = HexPupilOptions(influence_functions=False, piston_amplitude=0.25, piston_segment=3)
        result = build_hex_pupil(store, "pup", 256, 100.0, 2.0, 20.0, options)
        pupil = result.pupil.data
        phase = result.phase.data

        np.testing.assert_array_equal(phase != 0, pupil == 3)
        assert np.all(phase[pupil == 3] == np.float32(0.25))

    def test_piston_segment_requires_amplitude(self):
        """Test that a target segment without amplitude is invalid."""
        with pytest.raises(ValidationError):
            HexPupilOptions(piston_segment=2)


class TestVectorExport:
    """Test the segment polygon export."""

    def _export_options(self, tmp_path, level_file):
        return HexVectorExportOptions(
            output_dir=str(tmp_path / "out"),
            mask_level_file=str(level_file),
            index_map_name="indexmap",
        )

    def test_level_digit(self):
        """Test binary digit extraction of level/16."""
        assert level_digit(17, 4) == 1
        assert level_digit(16, 4) == 0
        assert level_digit(16, 0) == 1
        assert level_digit(8, 1) == 1

    def test_export_selected_segments(self, store, tmp_path):
        """Test polygons written for segments whose level bit is set."""
        level_file = tmp_path / "fpm_level.txt"
        level_file.write_text("1 2\n2 1\n")
        store.create_buffer("indexmap", (64, 64)).data[...] = 1

        options = HexPupilOptions(
            influence_functions=False, vector_export=self._export_options(tmp_path, level_file)
        )
        result = build_hex_pupil(store, "pup", 256, 100.0, 2.0, 20.0, options)
        n = result.segment_count

        text = (tmp_path / "out" / "hexcoord.txt").read_text()
        points = (tmp_path / "out" / "hexcoord_pt.txt").read_text().splitlines()
        assert result.exported_polygons == n
        assert text.startswith("DS 1 1 1;\n")
        assert text.endswith("DF;\nE\n")
        assert text.count("L 17;") == n
        assert len(points) == 6 * n

    def test_unselected_level_exports_nothing(self, store, tmp_path):
        """Test that a cleared bit writes only the file frame."""
        level_file = tmp_path / "fpm_level.txt"
        level_file.write_text("1 1\n")
        store.create_buffer("indexmap", (64, 64)).data[...] = 1

        options = HexPupilOptions(
            influence_functions=False, vector_export=self._export_options(tmp_path, level_file)
        )
        result = build_hex_pupil(store, "pup", 256, 100.0, 2.0, 20.0, options)

        assert result.exported_polygons == 0
        assert (tmp_path / "out" / "hexcoord.txt").read_text() == "DS 1 1 1;\nDF;\nE\n"

    def test_missing_inputs_skip_export(self, store, tmp_path):
        """Test that the export is skipped without a level file or index map."""
        options = HexPupilOptions(
            influence_functions=False,
            vector_export=self._export_options(tmp_path, tmp_path / "absent.txt"),
        )
        result = build_hex_pupil(store, "pup", 256, 100.0, 2.0, 20.0, options)

        assert result.exported_polygons is None
        assert not (tmp_path / "out").exists()

    def test_malformed_level_file(self, tmp_path):
        """Test that a bad level table raises MaskLevelFileError."""
        level_file = tmp_path / "fpm_level.txt"
        level_file.write_text("1 2\nthree four\n")

        with pytest.raises(MaskLevelFileError):
            load_mask_levels(level_file)

    def test_level_offset(self, tmp_path):
        """Test that levels are stored with the offset added."""
        level_file = tmp_path / "fpm_level.txt"
        level_file.write_text("4 -3\n\n7 10\n")

        assert load_mask_levels(level_file) == {4: 12, 7: 25}


class TestSegmentsToWavefrontModes:
    """Test mode cubes built from numbered segment images."""

    def _add_segment(self, store, name, rows, cols):
        image = store.create_buffer(name, (32, 32))
        image.data[rows, cols] = 1.0
        return image.data

    def test_modes(self, store):
        """Test piston, flux-weighted tilt planes and the composite mask."""
        seg0 = self._add_segment(store, "seg00", slice(2, 10), slice(4, 12))
        seg1 = self._add_segment(store, "seg01", slice(15, 30), slice(18, 25))

        modes = segments_to_wavefront_modes(store, "seg", 2, "modes")

        assert modes.data.shape == (6, 32, 32)
        np.testing.assert_array_equal(modes.data[0], seg0)
        np.testing.assert_array_equal(modes.data[3], seg1)
        for k in (1, 2, 4, 5):
            assert modes.data[k].sum() == pytest.approx(0.0, abs=1e-3)
        assert modes.data[1][2, 4] == pytest.approx(4 - 7.5)
        np.testing.assert_array_equal(store.get_buffer("_pupmask").data, seg0 + 2 * seg1)

    def test_no_segments(self, store):
        """Test that a missing first segment returns None."""
        assert segments_to_wavefront_modes(store, "seg", 2, "modes") is None
        assert "modes" not in store

    def test_zero_flux_segment(self, store):
        """Test that an empty segment is rejected without partial outputs."""
        self._add_segment(store, "s0", slice(2, 10), slice(4, 12))
        store.create_buffer("s1", (32, 32))

        with pytest.raises(DegenerateGeometryError):
            segments_to_wavefront_modes(store, "s", 1, "modes")
        assert "modes" not in store
        assert "_pupmask" not in store

    @pytest.mark.parametrize("ndigit", [0, 7])
    def test_ndigit_range(self, store, ndigit):
        """Test that the index width must be 1 to 6."""
        with pytest.raises(ValueError):
            segments_to_wavefront_modes(store, "seg", ndigit, "modes")
