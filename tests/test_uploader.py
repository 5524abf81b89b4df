"""
Tests for the command-line uploader. Network calls are mocked.
"""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest
import requests
from requests import exceptions as req_exc

import uploader


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "report 1.pdf"
    path.write_bytes(b"hello")
    return path


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestUploadFile:
    def test_posts_multipart(self, sample_file):
        payload = {"path": "uploads/1-report_1.pdf"}
        with patch("uploader.requests.post", return_value=_response(payload)) as post:
            result = uploader.upload_file(sample_file, api_url="http://api.test/files", timeout=5)

        assert result == payload
        args, kwargs = post.call_args
        assert args == ("http://api.test/files",)
        assert kwargs["files"]["file"][0] == "report 1.pdf"
        assert kwargs["params"] is None
        assert kwargs["timeout"] == 5
        assert kwargs["verify"] is True

    def test_name_override(self, sample_file):
        with patch("uploader.requests.post", return_value=_response({})) as post:
            uploader.upload_file(sample_file, name="other.pdf")
        kwargs = post.call_args.kwargs
        assert kwargs["files"]["file"][0] == "other.pdf"
        assert kwargs["params"] == {"filename": "other.pdf"}

    def test_http_error_propagates(self, sample_file):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        with patch("uploader.requests.post", return_value=response):
            with pytest.raises(requests.HTTPError):
                uploader.upload_file(sample_file)

    def test_ssl_error_falls_back_to_curl(self, sample_file):
        completed = subprocess.CompletedProcess(
            args=["curl"], returncode=0, stdout='{"path": "uploads/1-report_1.pdf"}', stderr=""
        )
        with patch("uploader.requests.post", side_effect=req_exc.SSLError("bad cert")), patch(
            "uploader.shutil.which", return_value="/usr/bin/curl"
        ), patch("uploader.subprocess.run", return_value=completed) as run:
            result = uploader.upload_file(sample_file, api_url="https://api.test/files", name="a b.pdf")

        assert result == {"path": "uploads/1-report_1.pdf"}
        command = run.call_args.args[0]
        assert command[0] == "curl"
        assert "https://api.test/files?filename=a%20b.pdf" in command
        assert f"file=@{sample_file}" in command
        assert "-k" not in command

    def test_curl_fallback_skips_verification_only_when_asked(self, sample_file):
        completed = subprocess.CompletedProcess(args=["curl"], returncode=0, stdout="{}", stderr="")
        with patch("uploader.requests.post", side_effect=req_exc.SSLError("bad cert")), patch(
            "uploader.shutil.which", return_value="/usr/bin/curl"
        ), patch("uploader.subprocess.run", return_value=completed) as run:
            uploader.upload_file(sample_file, verify=False)
        assert "-k" in run.call_args.args[0]

    def test_curl_command_targets_url_last(self, sample_file):
        command = uploader.build_curl_command(
            sample_file, api_url="https://api.test/files", name=None, timeout=7, verify=True
        )
        assert command[-1] == "https://api.test/files"
        assert command[command.index("--max-time") + 1] == "7"
        assert "-k" not in command

    def test_ssl_error_without_curl(self, sample_file):
        with patch("uploader.requests.post", side_effect=req_exc.SSLError("bad cert")), patch(
            "uploader.shutil.which", return_value=None
        ):
            with pytest.raises(req_exc.SSLError):
                uploader.upload_file(sample_file)

    def test_curl_garbage_response(self, sample_file):
        completed = subprocess.CompletedProcess(args=["curl"], returncode=0, stdout="<html>", stderr="")
        with patch("uploader.requests.post", side_effect=req_exc.SSLError("bad cert")), patch(
            "uploader.shutil.which", return_value="/usr/bin/curl"
        ), patch("uploader.subprocess.run", return_value=completed):
            with pytest.raises(uploader.UploadFailed, match="<html>"):
                uploader.upload_file(sample_file)


class TestMain:
    def test_success_prints_json(self, sample_file, capsys):
        payload = {"path": "uploads/1-report_1.pdf"}
        with patch("uploader.requests.post", return_value=_response(payload)):
            exit_code = uploader.main([str(sample_file), "--url", "http://api.test/files"])

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) == payload

    def test_insecure_disables_verification(self, sample_file):
        with patch("uploader.requests.post", return_value=_response({})) as post:
            assert uploader.main([str(sample_file), "--insecure"]) == 0
        assert post.call_args.kwargs["verify"] is False

    def test_missing_file(self, tmp_path, capsys):
        assert uploader.main([str(tmp_path / "nope.pdf")]) == 1
        assert "Not a file" in capsys.readouterr().err

    def test_request_failure(self, sample_file, capsys):
        with patch("uploader.requests.post", side_effect=requests.ConnectionError("refused")):
            assert uploader.main([str(sample_file)]) == 1
        assert "Upload failed" in capsys.readouterr().err
