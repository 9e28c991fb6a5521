#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for configuration and output naming
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path

from tissue_segmentation.configs.config import (
    DEFAULT_PROBABILITY_MAPS,
    ClassificationConfig,
    Config,
    ConfigurationError,
    OutputConfig,
)
from tissue_segmentation.utils.naming import probability_map_outputs


class TestConfig(unittest.TestCase):
    """Test cases for Config."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def _valid_config(self):
        return Config(
            image_path="image.nii.gz",
            atlas_paths=["csf.nii.gz", "gray.nii.gz", "white.nii.gz"],
            segmentation_path="seg.nii.gz",
            number_of_tissues=3,
        )

    def test_defaults(self):
        c = ClassificationConfig()
        self.assertEqual(c.iterations, 15)
        self.assertEqual(c.max_iterations, 50)
        self.assertEqual(c.tolerance, 0.001)
        self.assertEqual(c.padding, -1.0)
        self.assertTrue(c.exclude_background)

    def test_paths_are_converted(self):
        config = self._valid_config()
        self.assertIsInstance(config.image_path, Path)
        self.assertTrue(all(isinstance(p, Path) for p in config.atlas_paths))
        self.assertIsInstance(OutputConfig(output_dir="maps").output_dir, Path)

    def test_yaml_round_trip(self):
        config = self._valid_config()
        config.classification.padding = None
        config.classification.max_iterations = 30
        config.output.probability_maps = {4: [(0, "a"), (3, "d")]}

        path = os.path.join(self.test_dir, "config.yaml")
        config.to_yaml(path)
        loaded = Config.from_yaml(path)

        self.assertEqual(loaded.image_path, config.image_path)
        self.assertEqual(loaded.atlas_paths, config.atlas_paths)
        self.assertIsNone(loaded.classification.padding)
        self.assertEqual(loaded.classification.max_iterations, 30)
        self.assertEqual(loaded.output.probability_maps, {4: [(0, "a"), (3, "d")]})
        self.assertEqual(loaded.to_dict(), config.to_dict())

    def test_env_vars_expanded(self):
        os.environ["TISSUE_TEST_ROOT"] = "/data"
        try:
            config = Config.from_dict(
                {"image_path": "$TISSUE_TEST_ROOT/t1.nii", "atlas_paths": ["$TISSUE_TEST_ROOT/a.nii"]}
            )
        finally:
            del os.environ["TISSUE_TEST_ROOT"]

        self.assertEqual(config.image_path, Path("/data/t1.nii"))
        self.assertEqual(config.atlas_paths, [Path("/data/a.nii")])

    def test_valid_config_passes(self):
        self._valid_config().validate()

    def test_atlas_count_mismatch(self):
        config = self._valid_config()
        config.number_of_tissues = 4
        with self.assertRaises(ConfigurationError):
            config.validate()

    def test_missing_inputs(self):
        config = self._valid_config()
        config.atlas_paths = []
        with self.assertRaises(ConfigurationError):
            config.validate()

        config = self._valid_config()
        config.image_path = None
        with self.assertRaises(ConfigurationError):
            config.validate()

    def test_invalid_settings(self):
        for field_name, value in [
            ("iterations", 0),
            ("max_iterations", 0),
            ("tolerance", -0.1),
            ("variance_floor", 0.0),
        ]:
            config = self._valid_config()
            setattr(config.classification, field_name, value)
            with self.assertRaises(ConfigurationError, msg=field_name):
                config.validate()

    def test_invalid_probability_map_table(self):
        with self.assertRaises(ConfigurationError):
            Config.from_dict({"output": {"probability_maps": {"three": [[0, "csf"]]}}})


class TestProbabilityMapNaming(unittest.TestCase):
    """Test cases for the class-count to output-name table."""

    def test_three_classes_give_csf_gray_white(self):
        outputs = probability_map_outputs(3, DEFAULT_PROBABILITY_MAPS, "out", ".hdr")

        self.assertEqual(
            outputs,
            [
                (0, Path("out/csf.hdr")),
                (1, Path("out/gray.hdr")),
                (2, Path("out/white.hdr")),
            ],
        )

    def test_unknown_class_count_gives_no_maps(self):
        self.assertEqual(probability_map_outputs(4, DEFAULT_PROBABILITY_MAPS), [])

    def test_eleven_classes_include_background(self):
        outputs = probability_map_outputs(
            11, DEFAULT_PROBABILITY_MAPS, number_of_classes=12
        )
        self.assertEqual(len(outputs), 12)
        self.assertEqual(outputs[-1], (11, Path("other.nii.gz")))

    def test_entries_beyond_fitted_classes_are_skipped(self):
        outputs = probability_map_outputs(
            11, DEFAULT_PROBABILITY_MAPS, number_of_classes=11
        )
        self.assertEqual(len(outputs), 11)
        self.assertEqual(outputs[-1][0], 10)

    def test_custom_table(self):
        table = {4: [(3, "lesion")]}
        self.assertEqual(
            probability_map_outputs(4, table), [(3, Path("lesion.nii.gz"))]
        )


if __name__ == "__main__":
    unittest.main()
