"""
Tests for configuration loading and the command-line interface.
"""

import json

import pytest


class TestConfig:
    """Tests for get_config and apply_overrides."""

    def test_defaults(self, tmp_path, monkeypatch):
        from config import get_config

        monkeypatch.chdir(tmp_path)
        config = get_config()
        assert config.duplicates.jaccard_threshold == 0.9
        assert config.duplicates.hamming_threshold == 6
        assert config.embeddings.enabled
        assert config.export.output_name == "ordered.pdf"

    def test_config_file_overlay(self, tmp_path, monkeypatch):
        from config import get_config

        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.json").write_text(json.dumps({
            "processing": {"embeddings": False, "jaccardThreshold": 0.8},
            "ocrLang": "deu",
            "order": {"numbering_min_fraction": 0.5},
            "export": {"toc_page_size": [612, 792]},
        }))
        config = get_config()

        assert not config.embeddings.enabled
        assert config.duplicates.jaccard_threshold == 0.8
        assert config.extraction.ocr_language == "deu"
        assert config.order.numbering_min_fraction == 0.5
        assert config.export.toc_page_size == (612, 792)

    def test_unknown_keys_ignored(self):
        from config import PipelineConfig, apply_overrides

        config = apply_overrides(PipelineConfig(), {"bogus": 1, "order": {"nope": 2}})
        assert not hasattr(config, "bogus")
        assert config.order == PipelineConfig().order

    def test_environment_overrides(self, tmp_path, monkeypatch):
        from config import get_config

        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PAGE_RECON_EMBEDDINGS", "false")
        monkeypatch.setenv("PAGE_RECON_PHASH", "false")
        monkeypatch.setenv("PAGE_RECON_OCR_LANG", "fra")
        config = get_config()

        assert not config.embeddings.enabled
        assert not config.duplicates.use_image_hash
        assert config.extraction.ocr_language == "fra"

    def test_explicit_broken_file_raises(self, tmp_path):
        from config import get_config

        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(json.JSONDecodeError):
            get_config(path)

    def test_explicit_missing_file_raises(self, tmp_path):
        from config import get_config

        with pytest.raises(FileNotFoundError):
            get_config(tmp_path / "missing.json")


class TestCli:
    """Tests for the command-line entry point."""

    def test_successful_run(self, make_pdf, tmp_path, monkeypatch, capsys):
        import cli

        monkeypatch.chdir(tmp_path)
        source = tmp_path / "shuffled.pdf"
        source.write_bytes(make_pdf(["second\n2", "first\n1"]))

        with pytest.raises(SystemExit) as info:
            cli.main([
                "--input", str(source), "--output", str(tmp_path / "out"),
                "--no-embeddings", "--no-phash", "--no-ocr",
            ])

        assert info.value.code == 0
        assert (tmp_path / "out" / "ordered.pdf").exists()
        assert "Strategy: explicit_numbering" in capsys.readouterr().out

    def test_missing_input_fails(self, tmp_path, monkeypatch):
        import cli

        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit) as info:
            cli.main(["--input", str(tmp_path / "none.pdf"), "--output", str(tmp_path), "-q"])
        assert info.value.code == 1

    def test_missing_config_fails(self, make_pdf, tmp_path, monkeypatch):
        import cli

        monkeypatch.chdir(tmp_path)
        source = tmp_path / "doc.pdf"
        source.write_bytes(make_pdf(["only page"]))

        with pytest.raises(SystemExit) as info:
            cli.main([
                "--input", str(source), "--output", str(tmp_path / "out"),
                "--config", str(tmp_path / "missing.json"), "-q",
            ])
        assert info.value.code == 1
        assert not (tmp_path / "out" / "ordered.pdf").exists()

    def test_overrides_applied(self, tmp_path, monkeypatch):
        import cli

        monkeypatch.chdir(tmp_path)
        args = cli.setup_argparser().parse_args([
            "-i", "x.pdf", "-o", "out", "--no-toc", "--ocr-lang", "spa",
            "--jaccard-threshold", "0.75", "--hamming-threshold", "3",
        ])
        config = cli.build_config(args)

        assert not config.export.embed_toc
        assert config.extraction.ocr_language == "spa"
        assert config.duplicates.jaccard_threshold == 0.75
        assert config.duplicates.hamming_threshold == 3
