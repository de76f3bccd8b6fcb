"""Text extraction for uploaded files."""

from __future__ import annotations

import io
import re
import zipfile

import fitz
import yaml
from docx import Document
from markdown_it import MarkdownIt

from docqa.core.errors import ValidationError
from docqa.core.logging import get_logger
from docqa.ingest.types import LoadedDocument
from docqa.utils.text import clean_text

logger = get_logger(__name__)

_MD = MarkdownIt()
_SLIDE_RE = re.compile(r"ppt/slides/slide(\d+)\.xml$")
_PPTX_TEXT_RE = re.compile(r"<a:t>([^<]*)</a:t>")


class BaseLoader:
    """Common loader interface."""

    suffixes: tuple[str, ...] = ()
    mime_type: str = "application/octet-stream"
    label: str = "file"

    def can_load(self, name: str) -> bool:
        return name.lower().endswith(self.suffixes)

    def extract(self, raw: bytes) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def load(self, name: str, raw: bytes) -> LoadedDocument:
        try:
            text = clean_text(self.extract(raw))
        except ValidationError:
            raise
        except Exception as exc:
            logger.exception("Failed to parse %s", name)
            raise ValidationError(f"Failed to parse {self.label}: {exc}") from exc
        if not text:
            raise ValidationError(self.empty_message)
        return LoadedDocument(name=name, text=text, mime=self.mime_type, size_bytes=len(raw))

    @property
    def empty_message(self) -> str:
        return "File is empty"


class TextLoader(BaseLoader):
    mime_type = "text/plain"

    def can_load(self, name: str) -> bool:
        return True

    def extract(self, raw: bytes) -> str:
        return raw.decode("utf-8", errors="ignore")


class MarkdownLoader(BaseLoader):
    suffixes = (".md", ".markdown", ".mdx")
    mime_type = "text/markdown"
    label = "Markdown"

    def extract(self, raw: bytes) -> str:
        _, body = _split_front_matter(raw.decode("utf-8", errors="ignore"))
        return _markdown_to_text(body)


class PDFLoader(BaseLoader):
    suffixes = (".pdf",)
    mime_type = "application/pdf"
    label = "PDF"

    def extract(self, raw: bytes) -> str:
        with fitz.open(stream=raw, filetype="pdf") as doc:
            pages = [page.get_text("text", sort=True) for page in doc]
        return "\n\n".join(pages)

    @property
    def empty_message(self) -> str:
        return "PDF appears to be empty or contains only images"


class DocxLoader(BaseLoader):
    suffixes = (".docx",)
    mime_type = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    label = "Word document"

    def extract(self, raw: bytes) -> str:
        document = Document(io.BytesIO(raw))
        return "\n\n".join(para.text for para in document.paragraphs if para.text.strip())

    @property
    def empty_message(self) -> str:
        return "Word document appears to be empty"


class PptxLoader(BaseLoader):
    """Reads ``<a:t>`` text runs from each slide, in slide order."""

    suffixes = (".pptx",)
    mime_type = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
    label = "PowerPoint"

    def extract(self, raw: bytes) -> str:
        with zipfile.ZipFile(io.BytesIO(raw)) as archive:
            slides = sorted(
                (int(match.group(1)), name)
                for name in archive.namelist()
                if (match := _SLIDE_RE.search(name))
            )
            parts: list[str] = []
            for _, name in slides:
                xml = archive.read(name).decode("utf-8", errors="ignore")
                runs = [run for run in _PPTX_TEXT_RE.findall(xml) if run.strip()]
                slide_text = " ".join(runs)
                if slide_text.strip():
                    parts.append(slide_text)
        return "\n\n".join(parts)

    @property
    def empty_message(self) -> str:
        return "PowerPoint appears to be empty or contains only images"


class LoaderRegistry:
    """Registry that selects an appropriate loader for a file name."""

    def __init__(self) -> None:
        self._loaders: list[BaseLoader] = [
            MarkdownLoader(),
            PDFLoader(),
            DocxLoader(),
            PptxLoader(),
        ]
        self._fallback = TextLoader()

    def register(self, loader: BaseLoader) -> None:
        self._loaders.append(loader)

    def for_name(self, name: str) -> BaseLoader:
        for loader in self._loaders:
            if loader.can_load(name):
                return loader
        return self._fallback

    def load(self, name: str, raw: bytes) -> LoadedDocument:
        return self.for_name(name).load(name, raw)


def _split_front_matter(text: str) -> tuple[dict[str, object] | None, str]:
    if text.startswith("---"):
        parts = text.split("---", 2)
        if len(parts) >= 3:
            try:
                front_matter = yaml.safe_load(parts[1]) or {}
            except yaml.YAMLError:
                return None, text
            if isinstance(front_matter, dict):
                return front_matter, parts[2]
    return None, text


def _markdown_to_text(text: str) -> str:
    # Inline and code tokens carry the text; one block per paragraph.
    parts = [token.content.strip() for token in _MD.parse(text) if token.content.strip()]
    return "\n\n".join(parts) if parts else text


__all__ = [
    "BaseLoader",
    "TextLoader",
    "MarkdownLoader",
    "PDFLoader",
    "DocxLoader",
    "PptxLoader",
    "LoaderRegistry",
]
