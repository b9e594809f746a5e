"""
Unit tests for gene filtering and rescaling.
"""

import numpy as np
import pandas as pd
import pytest

from genecompendium.curation.filtering import (
    filter_quantile,
    gene_dispersion,
    rescale_expression,
)
from genecompendium.data.dataset import Dataset
from genecompendium.exceptions import FilterInvariantViolation, InvalidArgumentError


# =============================================================================
# Fixtures
# =============================================================================

def dataset_with_dispersions(dispersions, name="D1"):
    """Build a dataset whose genes have exactly the given standard deviations.

    Each gene row is ``[-s, 0, s]``, whose sample standard deviation is ``s``.
    """
    genes = [f"G{i}" for i in range(len(dispersions))]
    samples = ["p1", "p2", "p3"]
    values = np.array([[-s, 0.0, s] for s in dispersions], dtype=float)
    expression = pd.DataFrame(values, index=genes, columns=samples)
    phenotype = pd.DataFrame({"vital_status": ["living"] * 3}, index=samples)
    return Dataset(name=name, expression=expression, phenotype=phenotype)


@pytest.fixture
def four_genes():
    """Genes A-D with dispersions 1, 2, 3, 4."""
    ds = dataset_with_dispersions([1, 2, 3, 4])
    return ds.with_feature_names(["A", "B", "C", "D"])


@pytest.fixture
def tied_genes():
    """Four genes with identical dispersion."""
    return dataset_with_dispersions([1, 1, 1, 1])


# =============================================================================
# Dispersion Tests
# =============================================================================

class TestGeneDispersion:

    def test_values(self, four_genes):
        np.testing.assert_allclose(gene_dispersion(four_genes).to_numpy(), [1, 2, 3, 4])

    def test_single_observation_is_nan(self):
        ds = dataset_with_dispersions([1, 2])
        expression = ds.expression.copy()
        expression.iloc[0, [0, 1]] = np.nan
        dispersion = gene_dispersion(ds.with_expression(expression))
        assert np.isnan(dispersion.iloc[0])
        assert dispersion.iloc[1] == pytest.approx(2.0)


# =============================================================================
# Quantile Filter Tests
# =============================================================================

class TestFilterQuantile:
    """Tests for the self-checking quantile filter."""

    def test_drops_lowest_quarter(self, four_genes):
        filtered = filter_quantile(four_genes, 0.25)
        assert filtered.feature_names == ["B", "C", "D"]
        assert filtered.n_samples == four_genes.n_samples

    def test_input_unchanged(self, four_genes):
        filter_quantile(four_genes, 0.25)
        assert four_genes.n_genes == 4

    def test_tied_dispersions_violate(self, tied_genes):
        with pytest.raises(FilterInvariantViolation) as excinfo:
            filter_quantile(tied_genes, 0.25)
        assert excinfo.value.requested == pytest.approx(0.25)
        assert excinfo.value.observed == pytest.approx(0.0)
        assert excinfo.value.dataset_name == "D1"

    def test_removes_about_q(self):
        ds = dataset_with_dispersions(list(range(1, 201)))
        filtered = filter_quantile(ds, 0.1)
        assert filtered.n_genes == 180
        assert filtered.feature_names[0] == "G20"

    def test_ties_at_threshold_violate(self):
        dispersions = list(range(1, 10)) + [10] * 50 + list(range(11, 52))
        ds = dataset_with_dispersions(dispersions)

        with pytest.raises(FilterInvariantViolation) as excinfo:
            filter_quantile(ds, 0.095)
        assert excinfo.value.observed == pytest.approx(0.59)

    def test_tolerance_does_not_hide_tied_removal(self, tied_genes):
        # Nothing is strictly above a tied threshold, so every gene would go
        with pytest.raises(FilterInvariantViolation) as excinfo:
            filter_quantile(tied_genes, 0.25, tolerance=0.5)
        assert excinfo.value.observed == pytest.approx(1.0)

    def test_removed_fraction_matches_q(self):
        ds = dataset_with_dispersions(list(range(1, 401)))
        filtered = filter_quantile(ds, 0.3)
        removed = 1 - filtered.n_genes / ds.n_genes
        assert abs(removed - 0.3) <= 0.01

    def test_nan_dispersion_dropped(self):
        ds = dataset_with_dispersions(list(range(1, 101)) + [5])
        expression = ds.expression.copy()
        expression.iloc[-1, [0, 1]] = np.nan
        ds = ds.with_expression(expression)

        filtered = filter_quantile(ds, 0.1)
        assert filtered.n_genes == 90
        assert "G100" not in filtered.feature_names

    def test_all_nan_dispersions_violate(self):
        ds = dataset_with_dispersions([1, 2])
        expression = ds.expression.copy()
        expression.iloc[:, :2] = np.nan
        with pytest.raises(FilterInvariantViolation):
            filter_quantile(ds.with_expression(expression), 0.5)

    @pytest.mark.parametrize("q", [-0.1, 1.0, 1.5, True, "0.2", None])
    def test_invalid_quantile(self, four_genes, q):
        with pytest.raises(InvalidArgumentError):
            filter_quantile(four_genes, q)

    def test_invalid_input(self):
        with pytest.raises(InvalidArgumentError):
            filter_quantile(pd.DataFrame([[1.0, 2.0]]), 0.25)


# =============================================================================
# Rescaling Tests
# =============================================================================

class TestRescaleExpression:

    def test_rows_standardised(self):
        rng = np.random.default_rng(1)
        samples = [f"p{i}" for i in range(8)]
        expression = pd.DataFrame(
            rng.normal(5.0, 3.0, size=(6, 8)),
            index=[f"G{i}" for i in range(6)],
            columns=samples,
        )
        phenotype = pd.DataFrame(index=samples)
        ds = Dataset(name="D", expression=expression, phenotype=phenotype)

        scaled = rescale_expression(ds).expression
        np.testing.assert_allclose(scaled.mean(axis=1), 0.0, atol=1e-12)
        np.testing.assert_allclose(scaled.std(axis=1, ddof=1), 1.0)

    def test_constant_gene_becomes_nan(self):
        samples = ["p1", "p2", "p3"]
        expression = pd.DataFrame(
            [[2.0, 2.0, 2.0], [1.0, 2.0, 3.0]],
            index=["flat", "varied"],
            columns=samples,
        )
        ds = Dataset(name="D", expression=expression, phenotype=pd.DataFrame(index=samples))

        scaled = rescale_expression(ds).expression
        assert scaled.loc["flat"].isna().all()
        np.testing.assert_allclose(scaled.loc["varied"], [-1.0, 0.0, 1.0])
