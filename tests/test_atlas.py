#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for the voxel grid and atlas set
"""

import os
import shutil
import tempfile
import unittest

import nibabel as nib
import numpy as np

from tissue_segmentation.data.atlas import AtlasSet, load_atlas_set
from tissue_segmentation.data.volume import VoxelGrid


class TestVoxelGrid(unittest.TestCase):
    """Test cases for VoxelGrid."""

    def test_padding_mask(self):
        data = np.arange(27, dtype=float).reshape(3, 3, 3)
        data[0, 0, 0] = -1.0
        grid = VoxelGrid(data, padding_value=-1.0)

        self.assertFalse(grid.mask[0, 0, 0])
        self.assertEqual(grid.number_of_voxels, 26)
        np.testing.assert_array_equal(grid.intensities, data.ravel()[1:])

    def test_no_padding_classifies_all_voxels(self):
        grid = VoxelGrid(np.full((2, 2, 2), -1.0), padding_value=None)
        self.assertEqual(grid.number_of_voxels, 8)

    def test_grid_is_read_only(self):
        data = np.zeros((2, 2, 2))
        grid = VoxelGrid(data)

        with self.assertRaises(ValueError):
            grid.data[0, 0, 0] = 1.0
        data[0, 0, 0] = 5.0
        self.assertEqual(grid.data[0, 0, 0], 0.0)

    def test_spacing_from_affine(self):
        grid = VoxelGrid(np.zeros((2, 2, 2)), affine=np.diag([2.0, 3.0, 4.0, 1.0]))
        self.assertEqual(grid.spacing, (2.0, 3.0, 4.0))

    def test_invalid_inputs(self):
        with self.assertRaises(ValueError):
            VoxelGrid(np.zeros((2, 2)))
        with self.assertRaises(ValueError):
            VoxelGrid(np.zeros((2, 2, 2)), affine=np.eye(3))


class TestAtlasSet(unittest.TestCase):
    """Test cases for AtlasSet."""

    def setUp(self):
        self.shape = (3, 3, 3)
        self.gray = np.full(self.shape, 0.3)
        self.white = np.full(self.shape, 0.5)

    def test_complement_background_is_synthesized(self):
        atlases = AtlasSet([self.gray, self.white])

        self.assertEqual(atlases.number_of_tissues, 2)
        self.assertEqual(atlases.number_of_classes, 3)
        self.assertEqual(atlases.background_index, 2)
        np.testing.assert_allclose(atlases[2], 0.2)

    def test_background_synthesis_can_be_disabled(self):
        atlases = AtlasSet([self.gray, self.white], synthesize_background=False)

        self.assertEqual(len(atlases), 2)
        self.assertFalse(atlases.has_background)
        self.assertIsNone(atlases.background_index)

    def test_explicit_background(self):
        background = np.full(self.shape, 0.9)
        atlases = AtlasSet([self.gray, self.white], background=background)

        np.testing.assert_allclose(atlases[atlases.background_index], 0.9)

    def test_priors_are_normalized_relative_weights(self):
        atlases = AtlasSet(
            [self.gray, self.white], background=np.full(self.shape, 0.2)
        )
        priors = atlases.priors(np.ones(self.shape, dtype=bool))

        self.assertEqual(priors.shape, (27, 3))
        np.testing.assert_allclose(priors.sum(axis=1), 1.0)
        np.testing.assert_allclose(priors[0], [0.3, 0.5, 0.2])

    def test_zero_prior_voxels_get_uniform_prior(self):
        gray = self.gray.copy()
        white = self.white.copy()
        gray[0, 0, 0] = 0.0
        white[0, 0, 0] = 0.0
        atlases = AtlasSet([gray, white], synthesize_background=False)

        priors = atlases.priors(np.ones(self.shape, dtype=bool))
        np.testing.assert_allclose(priors[0], [0.5, 0.5])

    def test_out_of_range_values_are_clipped(self):
        gray = self.gray.copy()
        gray[1, 1, 1] = 1.5
        atlases = AtlasSet([gray], synthesize_background=False)
        self.assertEqual(atlases[0].max(), 1.0)

    def test_grids_are_bounds_checked_and_read_only(self):
        atlases = AtlasSet([self.gray, self.white])
        with self.assertRaises(IndexError):
            atlases[3]
        with self.assertRaises(ValueError):
            atlases[0][0, 0, 0] = 1.0

    def test_shape_mismatch(self):
        with self.assertRaises(ValueError):
            AtlasSet([self.gray, np.zeros((2, 2, 2))])
        with self.assertRaises(ValueError):
            AtlasSet([self.gray], background=np.zeros((2, 2, 2)))
        with self.assertRaises(ValueError):
            AtlasSet([])

    def test_names_must_match_class_count(self):
        with self.assertRaises(ValueError):
            AtlasSet([self.gray, self.white], names=["gray", "white"])
        atlases = AtlasSet([self.gray, self.white], names=["gray", "white", "other"])
        self.assertEqual(atlases.names, ("gray", "white", "other"))


class TestLoadAtlasSet(unittest.TestCase):
    """Test cases for reading atlases from NIfTI files."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.affine = np.diag([2.0, 2.0, 2.0, 1.0])
        self.grid = VoxelGrid(np.zeros((6, 6, 6)), affine=self.affine)

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def _save(self, name, data, affine):
        path = os.path.join(self.test_dir, name)
        nib.save(nib.Nifti1Image(data.astype(np.float32), affine), path)
        return path

    def test_atlases_on_image_grid(self):
        paths = [
            self._save("a0.nii.gz", np.full((6, 6, 6), 0.25), self.affine),
            self._save("a1.nii.gz", np.full((6, 6, 6), 0.75), self.affine),
        ]
        atlases = load_atlas_set(paths, self.grid)

        self.assertEqual(atlases.number_of_classes, 3)
        np.testing.assert_allclose(atlases[0], 0.25)
        np.testing.assert_allclose(atlases[2], 0.0, atol=1e-6)

    def test_atlas_on_other_grid_is_resampled(self):
        fine = self._save("fine.nii.gz", np.full((12, 12, 12), 0.5), np.eye(4))
        atlases = load_atlas_set([fine], self.grid, synthesize_background=False)

        self.assertEqual(atlases.shape, (6, 6, 6))
        np.testing.assert_allclose(atlases[0][:5, :5, :5], 0.5, atol=1e-6)

    def test_mismatch_without_resampling_is_an_error(self):
        fine = self._save("fine.nii.gz", np.full((12, 12, 12), 0.5), np.eye(4))
        with self.assertRaises(ValueError):
            load_atlas_set([fine], self.grid, resample=False)

    def test_missing_atlas(self):
        with self.assertRaises(FileNotFoundError):
            load_atlas_set([os.path.join(self.test_dir, "missing.nii")], self.grid)


if __name__ == "__main__":
    unittest.main()
