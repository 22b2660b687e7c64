"""
Report Builder Module
=====================

Assembles tables and saved figures into a single HTML report.
"""

import html
import os
from pathlib import Path
from typing import List, Optional

import pandas as pd
from loguru import logger

from config import get_config, REPORTS_DIR
from src.utils import get_timestamp

_STYLE = """
body { font-family: Helvetica, Arial, sans-serif; margin: 2em auto; max-width: 1100px; color: #222; }
h1 { border-bottom: 2px solid #444; }
h2 { margin-top: 2em; border-bottom: 1px solid #ccc; }
table { border-collapse: collapse; margin: 1em 0; font-size: 0.9em; }
th, td { border: 1px solid #ccc; padding: 4px 8px; text-align: right; }
th { background: #f0f0f0; }
img { max-width: 100%; margin: 0.5em 0; }
.figures { display: flex; flex-wrap: wrap; gap: 1em; }
.figures img { max-width: 48%; }
"""


class ReportBuilder:
    """Collect report sections and render them to HTML."""

    def __init__(self, config: Optional[dict] = None, output_dir: Optional[Path] = None):
        """
        Initialize ReportBuilder.

        Args:
            config: Configuration dictionary
            output_dir: Directory the report is written to
        """
        self.config = config or get_config()
        self.report_config = self.config.get("reports", {})
        self.output_dir = Path(output_dir or REPORTS_DIR)
        self.title = "Bank Customer Churn: Model Comparison"
        self.sections: List[str] = []

    def add_heading(self, text: str):
        """
        Append a section heading.

        Args:
            text: Heading text, HTML-escaped on insertion
        """
        self.sections.append(f"<h2>{html.escape(text)}</h2>")

    def add_text(self, text: str):
        """
        Append a paragraph.

        Args:
            text: Paragraph text, HTML-escaped on insertion
        """
        self.sections.append(f"<p>{html.escape(text)}</p>")

    def add_table(self, df: pd.DataFrame, caption: Optional[str] = None, index: bool = True):
        """Append a DataFrame rendered as an HTML table."""
        if caption:
            self.sections.append(f"<h3>{html.escape(caption)}</h3>")
        self.sections.append(df.to_html(index=index, float_format=lambda v: f"{v:.4f}", border=0))

    def add_figures(self, paths: List[Path]):
        """Append saved figures, referenced relative to the report location."""
        images = []
        for path in paths:
            if path is None:
                continue
            src = Path(os.path.relpath(Path(path).resolve(), self.output_dir.resolve())).as_posix()
            images.append(f'<img src="{html.escape(src)}" alt="{html.escape(Path(path).stem)}">')
        if images:
            self.sections.append('<div class="figures">' + "".join(images) + "</div>")

    def render(self) -> str:
        """
        Assemble the sections into a standalone HTML document.

        Returns:
            HTML string with an inline stylesheet
        """
        body = "\n".join(self.sections)
        return (
            "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\">\n"
            f"<title>{html.escape(self.title)}</title>\n<style>{_STYLE}</style>\n</head>\n<body>\n"
            f"<h1>{html.escape(self.title)}</h1>\n"
            f"<p>Generated {get_timestamp('%Y-%m-%d %H:%M:%S')}</p>\n"
            f"{body}\n</body>\n</html>\n"
        )

    def save(self, filename: Optional[str] = None) -> Path:
        """
        Write the report to disk.

        Args:
            filename: Output filename; defaults to the configured name

        Returns:
            Path to the written report
        """
        filename = filename or self.report_config.get("filename", "churn_report.html")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.output_dir / filename
        filepath.write_text(self.render(), encoding="utf-8")
        logger.info(f"Report written to {filepath}")
        return filepath
