"""
Screenshot and page capture tools.

Provides:
- screenshot: PNG/JPEG capture returned as MCP image content
- get_html: document markup, truncated for large pages
- print_to_pdf: base64 PDF of the page
- get_page_metrics: layout metrics
- get_accessibility_tree: first nodes of the full AX tree
"""

from __future__ import annotations

import base64
from io import BytesIO
from typing import TYPE_CHECKING, Any, Literal

from PIL import Image
from pydantic import Field

from ..server.types import ToolDescriptor, ToolResult
from .base import HTML_LIMIT, TabArgs, tool, truncate_output

if TYPE_CHECKING:
    from ..server.context import ServerContext

AX_NODE_LIMIT = 100


class ScreenshotArgs(TabArgs):
    format: Literal["png", "jpeg"] = Field("png", description="Image format")
    quality: int = Field(90, ge=0, le=100, description="JPEG quality (0-100)")
    full_page: bool = Field(False, description="Capture full page")
    clip_x: float | None = Field(None, description="Clip area X coordinate")
    clip_y: float | None = Field(None, description="Clip area Y coordinate")
    clip_width: float | None = Field(None, description="Clip area width")
    clip_height: float | None = Field(None, description="Clip area height")
    max_width: int | None = Field(None, gt=0, description="Downscale so the image is at most this many pixels wide")


class HtmlArgs(TabArgs):
    outer_html: bool = Field(True, alias="outerHTML", description="Get outer HTML (includes <html> tag)")


class PdfArgs(TabArgs):
    landscape: bool = Field(False, description="Landscape orientation")
    display_header_footer: bool = Field(False, description="Display header/footer")
    print_background: bool = Field(True, description="Print background graphics")
    scale: float = Field(1, ge=0.1, le=2, description="Scale (0.1-2)")
    paper_width: float | None = Field(None, description="Paper width in inches")
    paper_height: float | None = Field(None, description="Paper height in inches")


def downscale_image(data_b64: str, fmt: str, max_width: int | None, quality: int = 90) -> tuple[str, int, int]:
    """Decode a captured image, shrink it to max_width keeping aspect ratio, re-encode.

    Returns (base64 data, width, height). Images already narrow enough are returned untouched.
    """
    if not data_b64:
        return data_b64, 0, 0
    raw = base64.b64decode(data_b64)
    with Image.open(BytesIO(raw)) as img:
        width, height = img.size
        if not max_width or width <= max_width:
            return data_b64, width, height
        new_height = max(1, round(height * max_width / width))
        resized = img.resize((max_width, new_height), Image.Resampling.LANCZOS)
        if fmt == "jpeg" and resized.mode not in ("RGB", "L"):
            resized = resized.convert("RGB")
        buffer = BytesIO()
        save_kwargs: dict[str, Any] = {"quality": quality} if fmt == "jpeg" else {}
        resized.save(buffer, format=fmt.upper(), **save_kwargs)
    return base64.b64encode(buffer.getvalue()).decode(), max_width, new_height


def capture_tools(ctx: ServerContext) -> list[ToolDescriptor]:
    connector = ctx.connector

    async def screenshot(args: ScreenshotArgs) -> ToolResult:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Page")
        params: dict[str, Any] = {"format": args.format}
        if args.format == "jpeg":
            params["quality"] = args.quality
        if args.clip_x is not None and args.clip_y is not None and args.clip_width and args.clip_height:
            params["clip"] = {
                "x": args.clip_x,
                "y": args.clip_y,
                "width": args.clip_width,
                "height": args.clip_height,
                "scale": 1,
            }
        if args.full_page:
            params["captureBeyondViewport"] = True
        result = await tab.send("Page.captureScreenshot", params)
        data, width, height = downscale_image(result.get("data") or "", args.format, args.max_width, args.quality)
        suffix = ", full page" if args.full_page else ""
        summary = {
            "success": True,
            "format": args.format,
            "fullPage": args.full_page,
            "width": width,
            "height": height,
            "message": f"Screenshot captured ({args.format}{suffix})",
        }
        return ToolResult.with_image(summary, data, f"image/{args.format}")

    async def get_html(args: HtmlArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        prop = "outerHTML" if args.outer_html else "innerHTML"
        html = await tab.eval_js(f"document.documentElement.{prop}") or ""
        truncated = truncate_output(html, HTML_LIMIT, "html")
        return {"success": True, "html": truncated.pop("data"), "size": len(html), **truncated}

    async def print_to_pdf(args: PdfArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Page")
        params: dict[str, Any] = {
            "landscape": args.landscape,
            "displayHeaderFooter": args.display_header_footer,
            "printBackground": args.print_background,
            "scale": args.scale,
        }
        if args.paper_width:
            params["paperWidth"] = args.paper_width
        if args.paper_height:
            params["paperHeight"] = args.paper_height
        result = await tab.send("Page.printToPDF", params)
        return {"success": True, "data": result.get("data"), "format": "pdf", "message": "PDF generated successfully"}

    async def get_page_metrics(args: TabArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Page")
        metrics = await tab.send("Page.getLayoutMetrics")
        return {
            "success": True,
            "metrics": {
                "contentSize": metrics.get("contentSize"),
                "layoutViewport": metrics.get("layoutViewport"),
                "visualViewport": metrics.get("visualViewport"),
            },
        }

    async def get_accessibility_tree(args: TabArgs) -> dict[str, Any]:
        tab = await connector.get_tab(args.tab_id)
        await tab.enable("Accessibility")
        result = await tab.send("Accessibility.getFullAXTree")
        nodes = result.get("nodes") or []
        return {"success": True, "nodeCount": len(nodes), "nodes": nodes[:AX_NODE_LIMIT]}

    return [
        tool(
            "screenshot",
            "Capture a PNG/JPEG screenshot of the page. Use it to inspect layout before interacting "
            "and to verify results afterwards.",
            ScreenshotArgs,
            screenshot,
        ),
        tool(
            "get_html",
            "Extract the page HTML. Use it to find reliable selectors before clicking or typing.",
            HtmlArgs,
            get_html,
        ),
        tool("print_to_pdf", "Print the current page to PDF", PdfArgs, print_to_pdf),
        tool("get_page_metrics", "Get layout metrics of the page", TabArgs, get_page_metrics),
        tool("get_accessibility_tree", "Get the accessibility tree of the page", TabArgs, get_accessibility_tree),
    ]


__all__ = ["capture_tools", "downscale_image"]
