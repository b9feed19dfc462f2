"""
File export for rendered scenes.

This module handles writing render output to disk:
- SVG files (.svg) - The painted markup
- JSON reports (.json) - Diagnostic reports
- PNG previews - A rasterized overview of corrected rectangles and
  containment regions, with offending nodes highlighted

The PNG preview is a debugging aid, not an SVG rasterizer: it draws boxes
for boundaries and nodes at their corrected positions and outlines the
corridor and composite regions.
"""

from pathlib import Path
from typing import Optional, Set

from PIL import Image, ImageDraw, ImageFont

from .containment import ContainmentContext, collect_containment
from .diagnostics import DiagnosticReport
from .enforcement import EnforcementResult
from .models import iter_nodes


class SceneExporter:
    """
    Exports render results to files.

    Attributes:
        default_font: Default font name for PNG previews.
    """

    def __init__(self, default_font: Optional[str] = None):
        """
        Initialize the scene exporter.

        Args:
            default_font: Default font name for PNG previews (e.g., "Menlo").
        """
        self.default_font = default_font

    def save_svg(self, markup: str, filename: str) -> None:
        """
        Save SVG markup to a file.

        Args:
            markup: SVG document string.
            filename: Output filename (should end in .svg).
        """
        Path(filename).write_text(markup, encoding="utf-8")

    def save_report(self, report: DiagnosticReport, filename: str) -> None:
        """Save a diagnostic report as indented JSON."""
        Path(filename).write_text(report.to_json(indent=2), encoding="utf-8")

    def save_png_preview(
        self,
        enforcement: EnforcementResult,
        filename: str,
        scale: int = 1,
        bg_color: str = "#0f172a",
        boundary_color: str = "#8b5cf6",
        node_color: str = "#94a3b8",
        error_color: str = "#ef4444",
        region_color: str = "#22d3ee",
        font_size: int = 11,
        font: Optional[str] = None,
        context: Optional[ContainmentContext] = None,
    ) -> None:
        """
        Save a PNG preview of an enforcement result.

        Boundaries are outlined, other nodes drawn as thin boxes, corridor
        and composite regions outlined in the region color. Nodes named by
        any diagnostic are drawn in the error color.

        Args:
            enforcement: Output of the enforcement pass.
            filename: Output filename (should end in .png).
            scale: Resolution multiplier.
            bg_color: Background color as hex string.
            boundary_color: Outline color of boundaries.
            node_color: Outline color of other nodes.
            error_color: Outline color of nodes with diagnostics.
            region_color: Outline color of corridors and composites.
            font_size: Label font size in points.
            font: Font name to use (overrides default_font if provided).
            context: Precomputed containment regions. Derived from the
                enforcement result when omitted.

        Example:
            >>> result = BoundaryEnforcer().enforce(scene)
            >>> SceneExporter().save_png_preview(result, "preview.png", scale=2)
        """
        if scale < 1:
            raise ValueError("scale must be >= 1")

        scene = enforcement.scene
        if context is None:
            context = collect_containment(scene, enforcement.rects, index=enforcement.index)

        width = max(int(scene.canvas.width * scale), 1)
        height = max(int(scene.canvas.height * scale), 1)
        img = Image.new("RGB", (width, height), bg_color)
        draw = ImageDraw.Draw(img)
        loaded_font = self._load_monospace_font(font_size * scale, font or self.default_font)

        offending: Set[str] = {d.node_id for d in enforcement.diagnostics}

        def box(rect):
            # Pillow rejects boxes with x1 < x0
            x0, y0 = rect.x * scale, rect.y * scale
            x1 = x0 + max(rect.w, 0) * scale
            y1 = y0 + max(rect.h, 0) * scale
            return [x0, y0, x1, y1]

        for region in context.corridors + context.composites:
            draw.rectangle(box(region.rect), outline=region_color, width=1)

        seen = set()
        for node in iter_nodes(scene.nodes):
            if node.id in seen or node.id not in enforcement.rects:
                continue
            seen.add(node.id)
            rect = enforcement.rects[node.id]

            if node.id in offending:
                color = error_color
            elif node.kind == "boundary":
                color = boundary_color
            else:
                color = node_color

            if node.kind == "boundary":
                draw.rectangle(box(rect), outline=color, width=2 * scale)
                label = node.title or node.id
                draw.text(
                    (rect.x * scale + 4 * scale, rect.y * scale + 4 * scale),
                    label,
                    font=loaded_font,
                    fill=color,
                )
            elif rect.w > 0 or rect.h > 0:
                draw.rectangle(box(rect), outline=color, width=scale)

        img.save(Path(filename), "PNG")

    def _load_monospace_font(
        self, font_size: int, font_name: Optional[str] = None
    ) -> ImageFont.FreeTypeFont:
        """
        Load a monospace font for preview labels.

        Tries the user-specified font, then common system monospace fonts,
        then Pillow's default font.

        Args:
            font_size: Font size in points.
            font_name: Optional font name.

        Returns:
            A PIL ImageFont object.
        """
        fonts_to_try = []
        if font_name:
            fonts_to_try.append(font_name)

        fonts_to_try.extend(
            [
                "DejaVuSansMono",
                "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
                "Menlo",
                "/System/Library/Fonts/Menlo.ttc",
                "Consolas",
                "C:/Windows/Fonts/consola.ttf",
            ]
        )

        for candidate in fonts_to_try:
            try:
                return ImageFont.truetype(candidate, font_size)
            except OSError:
                continue

        try:
            return ImageFont.load_default(size=font_size)
        except TypeError:
            # Pillow < 10.1 has no size parameter
            return ImageFont.load_default()
