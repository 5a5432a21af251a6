"""
Optimization stages run over the output directory.

Each optimizer is its own stage so that configuration (or ``--optimize``)
can switch them independently through ``can_process``.
"""

from __future__ import annotations

import io
import re
from pathlib import Path

from PIL import Image

from cairn.build.stages.base import Stage, iter_files
from cairn.core.utils import log


class Optimize(Stage):
    """Rewrites output files with a given suffix when that shrinks them."""

    optimizer = ""
    suffixes: tuple[str, ...] = ()

    def can_process(self) -> bool:
        if self.options.dry_run:
            return False
        return self.options.optimizer_enabled(self.optimizer, self.config)

    def optimize_bytes(self, data: bytes, path: Path) -> bytes:
        raise NotImplementedError

    def process(self) -> None:
        optimized = 0
        saved = 0
        for file in iter_files(self.context.output_dir, self.suffixes):
            original = file.read_bytes()
            try:
                result = self.optimize_bytes(original, file)
            except UnicodeDecodeError as e:
                log.warning(f"Skipping {file.relative_to(self.context.output_dir)}: not UTF-8 ({e.reason})")
                continue
            if len(result) < len(original):
                file.write_bytes(result)
                optimized += 1
                saved += len(original) - len(result)
        log.verbose(f"{optimized} {self.optimizer} file(s) optimized, {saved} bytes saved")


# =============================================================================
# Text Minifiers
# =============================================================================

_PRESERVE_BLOCKS = re.compile(r"(<(pre|textarea|script|style)\b.*?</\2>)", re.DOTALL | re.IGNORECASE)
_HTML_COMMENT = re.compile(r"<!--(?!\[if).*?-->", re.DOTALL)
_BETWEEN_TAGS = re.compile(r">\s+<")
_WHITESPACE = re.compile(r"\s+")

_CSS_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_CSS_PUNCTUATION = re.compile(r"\s*([{}:;,>])\s*")


def minify_html(text: str) -> str:
    """Drop comments and inter-tag whitespace outside pre/textarea/script/style."""
    pieces = _PRESERVE_BLOCKS.split(text)
    out = []
    # split() yields text, whole block, tag name, text, ...
    for i in range(0, len(pieces), 3):
        chunk = _HTML_COMMENT.sub("", pieces[i])
        chunk = _BETWEEN_TAGS.sub("><", chunk)
        out.append(_WHITESPACE.sub(" ", chunk))
        if i + 1 < len(pieces):
            out.append(pieces[i + 1])
    return "".join(out).strip()


def minify_css(text: str) -> str:
    text = _CSS_COMMENT.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    text = _CSS_PUNCTUATION.sub(r"\1", text)
    return text.replace(";}", "}").strip()


def minify_js(text: str) -> str:
    """Line-level minification: trims lines, drops blanks and ``//`` comment lines."""
    lines = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("//"):
            continue
        lines.append(stripped)
    return "\n".join(lines)


class OptimizeHtml(Optimize):
    name = "Optimizing HTML"
    optimizer = "html"
    suffixes = (".html", ".htm")

    def optimize_bytes(self, data: bytes, path: Path) -> bytes:
        return minify_html(data.decode("utf-8")).encode("utf-8")


class OptimizeCss(Optimize):
    name = "Optimizing CSS"
    optimizer = "css"
    suffixes = (".css",)

    def optimize_bytes(self, data: bytes, path: Path) -> bytes:
        return minify_css(data.decode("utf-8")).encode("utf-8")


class OptimizeJs(Optimize):
    name = "Optimizing JS"
    optimizer = "js"
    suffixes = (".js",)

    def optimize_bytes(self, data: bytes, path: Path) -> bytes:
        return minify_js(data.decode("utf-8")).encode("utf-8")


# =============================================================================
# Images
# =============================================================================

_IMAGE_FORMATS = {".png": "PNG", ".jpg": "JPEG", ".jpeg": "JPEG", ".gif": "GIF"}


class OptimizeImages(Optimize):
    """Re-encodes raster images with Pillow's ``optimize`` flag."""

    name = "Optimizing images"
    optimizer = "images"
    suffixes = tuple(_IMAGE_FORMATS)

    def optimize_bytes(self, data: bytes, path: Path) -> bytes:
        fmt = _IMAGE_FORMATS[path.suffix.lower()]
        buf = io.BytesIO()
        with Image.open(io.BytesIO(data)) as im:
            # Re-saving would keep only the first frame
            if getattr(im, "n_frames", 1) > 1:
                log.debug(f"Skipping animated image {path.name}")
                return data
            params = {"optimize": True}
            if fmt == "JPEG":
                params["quality"] = 85
            im.save(buf, format=fmt, **params)
        return buf.getvalue()
