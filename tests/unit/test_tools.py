"""Unit tests for optional tool installation."""

from unittest.mock import patch

import httpx
import pytest

from onenode_cli.bootstrap.packages import AptPackageManager, DnfPackageManager
from onenode_cli.bootstrap.tools import install_k9s, k9s_deb_url, k9s_installed
from onenode_cli.errors import BootstrapError, DownloadError

VERSION = "v0.50.18"


def _deb_response(status: int = 200):
    url = k9s_deb_url(VERSION)
    return httpx.Response(status, content=b"DEB", request=httpx.Request("GET", url))


class TestInstallK9s:
    """Tests for install_k9s."""

    def test_url(self):
        assert k9s_deb_url(VERSION) == (
            "https://github.com/derailed/k9s/releases/download/v0.50.18/k9s_linux_amd64.deb"
        )

    def test_installs_deb_and_cleans_up(self, host, commands):
        """Test the package is installed with dpkg and the download removed."""
        with patch("httpx.get", return_value=_deb_response()):
            install_k9s(host, AptPackageManager(host), VERSION)

        assert commands.ran("dpkg", "-i")
        assert not commands.ran("apt-get")
        assert not host.exists("/tmp/k9s_linux_amd64.deb")

    def test_fixes_broken_dependencies(self, host, commands):
        """Test a dpkg failure triggers an apt dependency fix."""
        commands.respond("dpkg", "-i", returncode=1)

        with patch("httpx.get", return_value=_deb_response()):
            install_k9s(host, AptPackageManager(host), VERSION)

        assert commands.ran("apt-get", "install", "-f")
        assert not host.exists("/tmp/k9s_linux_amd64.deb")

    def test_fix_failure_propagates_and_cleans_up(self, host, commands):
        """Test the download is removed even when the fix fails."""
        commands.respond("dpkg", "-i", returncode=1)
        commands.respond("apt-get", "-f", returncode=100)

        with patch("httpx.get", return_value=_deb_response()):
            with pytest.raises(BootstrapError):
                install_k9s(host, AptPackageManager(host), VERSION)

        assert not host.exists("/tmp/k9s_linux_amd64.deb")

    def test_download_failure(self, host, commands):
        """Test a failed download raises before dpkg runs."""
        with patch("httpx.get", return_value=_deb_response(404)):
            with pytest.raises(DownloadError):
                install_k9s(host, AptPackageManager(host), VERSION)

        assert not commands.ran("dpkg")

    def test_non_debian_host(self, host, commands):
        """Test RHEL hosts are rejected without downloading."""
        with patch("httpx.get") as mock_get:
            with pytest.raises(BootstrapError):
                install_k9s(host, DnfPackageManager(host), VERSION)

        mock_get.assert_not_called()

    def test_installed(self, host):
        with patch("shutil.which", return_value="/usr/bin/k9s"):
            assert k9s_installed(host)
