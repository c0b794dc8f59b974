"""
End-to-end tests for the integration dispatcher.
"""

import sys

import pytest

import anndata as ad

from scrna_recom import cli, integrate
from scrna_recom.errors import (
    IntegrationError,
    IntegrationRunError,
    ManifestLoadError,
    PersistenceError,
    PreprocessingError,
    UnsupportedStrategy,
)
from scrna_recom.integration import IntegrationParams, Strategy


@pytest.fixture(scope="module")
def harmony_run(shared_manifest, tmp_path_factory):
    outdir = tmp_path_factory.mktemp("harmony")
    return integrate(shared_manifest, outdir, "harmony")


class TestRejectedRuns:
    def test_unsupported_strategy_touches_nothing(self, tmp_path):
        outdir = tmp_path / "out"
        with pytest.raises(UnsupportedStrategy, match="seurat-cca"):
            integrate(tmp_path / "missing.csv", outdir, "scvi")
        assert not outdir.exists()

    @pytest.mark.parametrize("strategy", [s.stem for s in Strategy])
    def test_single_sample_is_rejected(self, manifest_factory, tmp_path, strategy):
        manifest = manifest_factory(n_samples=1)
        outdir = tmp_path / "out"

        with pytest.raises(PreprocessingError) as excinfo:
            integrate(manifest, outdir, strategy)

        assert excinfo.value.stage == "preprocess"
        assert list(outdir.iterdir()) == []

    def test_missing_sample_file(self, manifest_factory, tmp_path):
        manifest = manifest_factory(n_samples=2)
        (manifest.parent / "S2.h5ad").unlink()
        outdir = tmp_path / "out"

        with pytest.raises(ManifestLoadError):
            integrate(manifest, outdir, "harmony")
        assert list(outdir.iterdir()) == []

    def test_reference_out_of_range(self, shared_manifest, tmp_path):
        params = IntegrationParams(reference=(0, 5))

        with pytest.raises(IntegrationError) as excinfo:
            integrate(shared_manifest, tmp_path, Strategy.LARGEDATA, params)

        assert excinfo.value.stage == "reference"
        assert list(tmp_path.iterdir()) == []

    def test_single_dataset_label_fails_harmony(self, manifest_factory, tmp_path):
        manifest = manifest_factory(n_samples=2, extra_columns=None)
        table = manifest.read_text().replace("batchB", "batchA")
        manifest.write_text(table)

        with pytest.raises(IntegrationError, match="two distinct dataset labels"):
            integrate(manifest, tmp_path / "out", "harmony")
        assert list((tmp_path / "out").iterdir()) == []


class TestHarmonyRun:
    def test_artifacts_written(self, harmony_run):
        artifacts = harmony_run.artifacts
        assert artifacts.object_path.name == "integration.harmony.h5ad"
        assert artifacts.report_path.name == "integration.harmony.pdf"
        assert artifacts.exists()
        assert sorted(p.name for p in artifacts.outdir.iterdir()) == [
            "integration.harmony.h5ad",
            "integration.harmony.pdf",
        ]

    def test_combined_object(self, harmony_run):
        combined = harmony_run.combined
        assert combined.n_obs == 3 * 120
        assert {"X_pca", "X_pca_harmony", "X_umap"} <= set(combined.obsm)
        assert set(combined.obs["dataset"]) == {"batchA", "batchB", "batchC"}
        assert combined.obs_names.is_unique

    def test_report_pages(self, harmony_run):
        assert harmony_run.n_report_pages == 2
        assert harmony_run.artifacts.report_path.read_bytes().startswith(b"%PDF")

    def test_serialized_object_reloads(self, harmony_run):
        reloaded = ad.read_h5ad(harmony_run.artifacts.object_path)
        assert reloaded.n_obs == harmony_run.combined.n_obs
        assert "X_pca_harmony" in reloaded.obsm
        assert reloaded.uns["integration"]["strategy"] == "harmony"
        assert int(reloaded.uns["integration"]["n_samples"]) == 3


class TestRerunsAndIsolation:
    def test_rerun_overwrites(self, shared_manifest, tmp_path):
        first = integrate(shared_manifest, tmp_path, "harmony")
        second = integrate(shared_manifest, tmp_path, "harmony")

        assert second.artifacts.object_path == first.artifacts.object_path
        assert sorted(p.name for p in tmp_path.iterdir()) == [
            "integration.harmony.h5ad",
            "integration.harmony.pdf",
        ]

    def test_strategies_do_not_touch_each_other(self, shared_manifest, tmp_path):
        cca = integrate(shared_manifest, tmp_path, "seurat-cca")
        before = cca.artifacts.object_path.read_bytes()

        integrate(shared_manifest, tmp_path, "harmony")

        assert cca.artifacts.object_path.read_bytes() == before
        assert len(list(tmp_path.iterdir())) == 4

    def test_report_failure_keeps_previous_artifacts(self, shared_manifest, tmp_path, monkeypatch):
        run = integrate(shared_manifest, tmp_path, "harmony")
        before = run.artifacts.object_path.read_bytes()

        def broken_report(report, adata, strategy):
            raise RuntimeError("renderer crashed")

        monkeypatch.setattr("scrna_recom.integration.dispatcher.render_report", broken_report)
        with pytest.raises(PersistenceError) as excinfo:
            integrate(shared_manifest, tmp_path, "harmony")

        assert excinfo.value.stage == "persist"
        assert run.artifacts.object_path.read_bytes() == before
        assert sorted(p.name for p in tmp_path.iterdir()) == [
            "integration.harmony.h5ad",
            "integration.harmony.pdf",
        ]

    def test_report_failure_on_first_run_leaves_nothing(self, shared_manifest, tmp_path, monkeypatch):
        def broken_report(report, adata, strategy):
            raise RuntimeError("renderer crashed")

        monkeypatch.setattr("scrna_recom.integration.dispatcher.render_report", broken_report)
        with pytest.raises(PersistenceError):
            integrate(shared_manifest, tmp_path, "seurat-cca")
        assert list(tmp_path.iterdir()) == []


class TestStrategies:
    def test_cca(self, shared_manifest, tmp_path):
        run = integrate(shared_manifest, tmp_path, "seurat-cca")
        assert run.combined.obsm["X_pca"].shape[1] == 30
        assert "X_umap" in run.combined.obsm
        assert run.n_report_pages == 2
        assert run.artifacts.exists()

    def test_largedata_projects_queries(self, shared_manifest, tmp_path):
        run = integrate(shared_manifest, tmp_path, "seurat-largedata", IntegrationParams(reference=(0,)))
        combined = run.combined

        assert combined.n_obs == 3 * 120
        assert int(combined.obs["reference"].sum()) == 120
        assert {"X_pca", "X_umap"} <= set(combined.obsm)
        assert run.combined.uns["integration"]["params"]["reference"] == [0]
        assert run.artifacts.exists()

    def test_largedata_default_reference(self, shared_manifest, tmp_path):
        run = integrate(shared_manifest, tmp_path, Strategy.LARGEDATA)
        assert int(run.combined.obs["reference"].sum()) == 240

    def test_sctransform(self, shared_manifest, tmp_path):
        run = integrate(shared_manifest, tmp_path, "sctransform")
        assert {"X_pca", "X_umap"} <= set(run.combined.obsm)
        assert run.artifacts.report_path.name == "integration.sctransform.pdf"
        assert run.artifacts.exists()

    def test_csv_samples(self, manifest_factory, tmp_path):
        manifest = manifest_factory(n_samples=2, fmt="csv")
        run = integrate(manifest, tmp_path / "out", "harmony")
        assert run.combined.n_obs == 240

    def test_liger(self, shared_manifest, tmp_path):
        pytest.importorskip("pyliger")
        params = IntegrationParams(liger_k=5)

        run = integrate(shared_manifest, tmp_path, "liger", params)

        assert run.combined.obsm["X_inmf"].shape[1] == 5
        assert "cluster" in run.combined.obs
        assert run.n_report_pages == 3
        assert run.artifacts.exists()


class TestLigerWithoutPyliger:
    @pytest.fixture(autouse=True)
    def hide_pyliger(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "pyliger", None)

    def test_integrate_reports_missing_dependency(self, shared_manifest, tmp_path):
        with pytest.raises(IntegrationRunError, match="pyliger is required") as excinfo:
            integrate(shared_manifest, tmp_path, "liger")

        assert isinstance(excinfo.value, IntegrationError)
        assert excinfo.value.stage == "integrate"
        assert list(tmp_path.iterdir()) == []

    def test_cli_exits_with_run_failure(self, shared_manifest, tmp_path):
        code = cli.main([str(shared_manifest), str(tmp_path), "-s", "liger"])
        assert code == cli.EXIT_RUN_FAILED
