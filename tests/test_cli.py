"""
Tests for the curation command-line script.
"""

import numpy as np
import pandas as pd
import pytest

from genecompendium.data.dataset import Dataset
from genecompendium.data.repository import DatasetRepository
from genecompendium.utils.config import CompendiumConfig, CurationConfig
from scripts.curate_compendium import build_config, main, parse_args


@pytest.fixture
def repository(tmp_path):
    repository = DatasetRepository(tmp_path / "compendium")
    rng = np.random.default_rng(0)
    for name, n_samples in [("GSE1", 12), ("GSE2", 4)]:
        samples = [f"p{i}" for i in range(n_samples)]
        expression = pd.DataFrame(
            rng.normal(size=(8, n_samples)),
            index=[f"G{i}" for i in range(8)],
            columns=samples,
        )
        phenotype = pd.DataFrame({"vital_status": ["deceased"] * n_samples}, index=samples)
        repository.store_dataset(
            Dataset(name=name, expression=expression, phenotype=phenotype),
            tags=["ExpressionSet"],
        )
    repository.store_duplicates({"GSE1:p0": ["GSE2:p0"]})
    return repository


class TestBuildConfig:

    def test_defaults(self):
        config = build_config(parse_args([]))
        assert config == CompendiumConfig()

    def test_overrides(self):
        args = parse_args([
            "--quantile-cutoff", "0.1",
            "--min-sample-size", "30",
            "--no-remove-subsets",
            "--keep-common-only",
            "--tags", "ExpressionSet", "ovarian",
            "--repository", "/tmp/repo",
            "-v",
        ])
        config = build_config(args)
        assert config.curation.quantile_cutoff == 0.1
        assert config.curation.min_sample_size == 30
        assert config.curation.remove_subsets is False
        assert config.curation.keep_common_only is True
        assert config.curation.catalog_tags == ("ExpressionSet", "ovarian")
        assert config.repository.root_dir == "/tmp/repo"
        assert config.log_level == "DEBUG"

    def test_yaml_then_flags(self, tmp_path):
        path = tmp_path / "curation.yaml"
        CompendiumConfig(curation=CurationConfig(min_sample_size=5, rescale=True)).save(path)

        config = build_config(parse_args(["--config", str(path), "--min-sample-size", "50"]))
        assert config.curation.min_sample_size == 50
        assert config.curation.rescale is True


class TestMain:

    def test_run(self, repository, tmp_path, capsys):
        output_dir = tmp_path / "curated"
        code = main([
            "--repository", str(repository.root_dir),
            "--min-sample-size", "10",
            "--output-dir", str(output_dir),
        ])
        assert code == 0
        assert (output_dir / "GSE1_expression.parquet").exists()
        assert not (output_dir / "GSE2_expression.parquet").exists()
        assert (output_dir / "curation_report.json").exists()
        assert "insufficientEventsOrSampleSize" in capsys.readouterr().out
