"""Tests for static asset lookup and content types."""

import pytest

from app.services.static_assets import StaticAssetProvider, get_content_type


@pytest.fixture
def static_root(tmp_path):
    root = tmp_path / "static"
    (root / "js").mkdir(parents=True)
    (root / "index.html").write_text("<html>console</html>")
    (root / "js" / "app.js").write_text("console.log('hi');")
    (root / "logo.PNG").write_bytes(b"\x89PNG")
    (tmp_path / "secret.txt").write_text("outside")
    return root


class TestGetContentType:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/index.html", "text/html;charset=UTF-8"),
            ("/js/app.js", "application/javascript;charset=UTF-8"),
            ("/css/site.css", "text/css;charset=UTF-8"),
            ("/data.json", "application/json;charset=UTF-8"),
            ("/img/a.jpg", "image/jpeg;charset=UTF-8"),
            ("/img/a.jpeg", "image/jpeg;charset=UTF-8"),
            ("/img/a.gif", "image/gif;charset=UTF-8"),
            ("/logo.PNG", "image/png;charset=UTF-8"),
            ("/README", "text/plain;charset=UTF-8"),
            ("/archive.tar.gz", "text/plain;charset=UTF-8"),
        ],
    )
    def test_extension_lookup(self, path, expected):
        assert get_content_type(path) == expected


class TestStaticAssetProvider:
    def test_root_serves_index(self, static_root):
        body, content_type = StaticAssetProvider(static_root).load("/")
        assert body == b"<html>console</html>"
        assert content_type == "text/html;charset=UTF-8"

    def test_index_html_explicit(self, static_root):
        body, _ = StaticAssetProvider(static_root).load("/index.html")
        assert body == b"<html>console</html>"

    def test_nested_asset(self, static_root):
        body, content_type = StaticAssetProvider(static_root).load("/js/app.js")
        assert body == b"console.log('hi');"
        assert content_type == "application/javascript;charset=UTF-8"

    def test_missing_file(self, static_root):
        assert StaticAssetProvider(static_root).load("/nope.js") is None

    def test_directory_is_not_an_asset(self, static_root):
        assert StaticAssetProvider(static_root).load("/js") is None

    def test_traversal_outside_root(self, static_root):
        assert StaticAssetProvider(static_root).load("/../secret.txt") is None
