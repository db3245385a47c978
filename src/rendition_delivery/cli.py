"""Command-line interface for rendition_delivery."""

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .dimensions import CropDimension, CropStringError, Dimension
from .file_types import VideoManifestFormat
from .resolver import DeliveryRequest
from .service import get_service

app = typer.Typer(
    name="rendition-delivery",
    help="Resolve rendition delivery URLs for remote assets",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
)

console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit if --version flag is provided."""
    if value:
        typer.echo(f"rendition-delivery version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Resolve rendition delivery URLs for remote assets."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _parse_ratio_pair(value: str) -> Dimension:
    parts = value.split(":")
    if len(parts) != 2:
        raise ValueError(f"expected 'W:H', got '{value}'")
    dimension = Dimension(int(parts[0]), int(parts[1]))
    if not dimension.is_known:
        raise ValueError(f"ratio sides must be positive, got '{value}'")
    return dimension


@app.command()
def url(
    reference: str = typer.Argument(..., help="Asset reference, e.g. /urn:aaid:aem:.../image.jpg"),
    width: Optional[int] = typer.Option(None, "--width", "-w", help="Target width in pixels", min=1),
    height: Optional[int] = typer.Option(None, "--height", help="Target height in pixels", min=1),
    ratio: Optional[float] = typer.Option(None, "--ratio", help="Target aspect ratio (width / height)", min=0.0),
    crop: Optional[str] = typer.Option(None, "--crop", "-c", help="Crop rectangle as 'left,top,width,height'"),
    smart_crop: Optional[str] = typer.Option(None, "--smart-crop", help="Smart-crop to a ratio, e.g. '16:9'"),
    rotate: Optional[int] = typer.Option(None, "--rotate", "-r", help="Rotation in degrees"),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", help="Output quality percent", min=1, max=100),
    output_format: Optional[str] = typer.Option(None, "--format", "-f", help="Enforce output file extension"),
    download: bool = typer.Option(False, "--download", help="Deliver the original binary"),
    attachment: bool = typer.Option(False, "--attachment", help="Serve the original binary as a download"),
    manifest_format: Optional[VideoManifestFormat] = typer.Option(
        None, "--manifest-format", help="Video streaming manifest format", case_sensitive=False
    ),
    hosted_player: bool = typer.Option(False, "--hosted-player", help="Deliver videos through the hosted player"),
) -> None:
    """Print the delivery URL for a remote asset.

    \b
    Example:
        rendition-delivery url /urn:aaid:aem:1234/my-image.jpg --width 800 --smart-crop 16:9
    """
    try:
        crop_dimension = CropDimension.from_rect(crop) if crop else None
        smart_ratio = _parse_ratio_pair(smart_crop) if smart_crop else None
    except (CropStringError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    request = DeliveryRequest(
        width=width,
        height=height,
        ratio=ratio,
        crop_dimension=crop_dimension,
        crop_smart_ratio=smart_ratio,
        rotation=rotate,
        quality_percent=quality,
        enforce_output_extension=output_format,
        download=download,
        content_disposition_attachment=attachment,
        video_manifest_format=manifest_format,
        hosted_video_player=hosted_player,
    )
    rendition = get_service().remote_rendition(reference, request)

    if rendition.url is None:
        reason = f" ({rendition.invalid_reason})" if rendition.invalid_reason else ""
        console.print(f"[red]No delivery URL:[/red] {rendition.state.value}{reason}")
        raise typer.Exit(1)

    typer.echo(rendition.url)
    if rendition.width and rendition.height:
        console.print(f"[dim]{rendition.state.value} {rendition.width}x{rendition.height}[/dim]")
    if rendition.poster_url:
        console.print(f"[dim]poster {rendition.poster_url}[/dim]")


@app.command()
def metadata(
    reference: str = typer.Argument(..., help="Asset reference, e.g. /urn:aaid:aem:.../image.jpg"),
) -> None:
    """Show the repository metadata of a remote asset."""
    asset_metadata = get_service().fetch_metadata(reference)
    if asset_metadata is None:
        console.print(f"[red]No metadata available for[/red] {reference}")
        raise typer.Exit(1)

    table = Table(title=reference)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("MIME type", asset_metadata.mime_type)
    table.add_row("Kind", asset_metadata.kind.value)
    table.add_row("Dimension", str(asset_metadata.dimension) if asset_metadata.dimension else "unknown")
    table.add_row("File size", str(asset_metadata.file_size) if asset_metadata.file_size is not None else "unknown")
    table.add_row("Status", asset_metadata.asset_status or "")
    for smart_crop in asset_metadata.smart_crops:
        table.add_row(
            f"Smart crop {smart_crop.name}",
            f"{smart_crop.crop_dimension.crop_string_width_height} (ratio {smart_crop.ratio:.4f})",
        )

    Console().print(table)


if __name__ == "__main__":
    app()
