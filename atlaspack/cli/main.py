"""Main CLI entry point for atlaspack."""

import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from atlaspack import __version__
from atlaspack.binpack.max_rects import FreeRectChoiceHeuristic
from atlaspack.config import ATLAS_SIZES, IMAGE_EXTENSIONS, PackOptions, get_settings
from atlaspack.errors import AtlasError, CantFitError
from atlaspack.utils import get_logger, setup_logging, verbosity_to_level

console = Console()
logger = get_logger("cli")

HEURISTIC_NAMES = [h.value for h in FreeRectChoiceHeuristic]


@click.group()
@click.version_option(version=__version__, prog_name="atlaspack")
def cli() -> None:
    """atlaspack - pack images into texture atlases."""
    pass


@cli.command()
@click.argument("output", type=click.Path(dir_okay=False))
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--default", "-d", "use_defaults", is_flag=True, help="Use default settings (-x -p -t -u)")
@click.option("--xml", "-x", is_flag=True, help="Save the atlas data as a .xml file")
@click.option("--binary", "-b", is_flag=True, help="Save the atlas data as a .bin file")
@click.option("--json", "-j", "as_json", is_flag=True, help="Save the atlas data as a .json file")
@click.option("--premultiply", "-p", is_flag=True, help="Premultiply pixels by their alpha channel")
@click.option("--trim", "-t", is_flag=True, help="Trim excess transparency off the bitmaps")
@click.option("--verbose", "-v", count=True, help="Print progress (repeat for more detail)")
@click.option("--force", "-f", is_flag=True, help="Ignore caching, forcing a repack")
@click.option("--unique", "-u", is_flag=True, help="Remove duplicate bitmaps from the atlas")
@click.option("--rotate", "-r", is_flag=True, help="Allow rotating bitmaps 90 degrees clockwise")
@click.option("--size", "-s", type=click.Choice([str(s) for s in ATLAS_SIZES]), help="Max atlas size")
@click.option("--pad", "-P", type=int, help="Padding between images (0 to 16)")
@click.option("--heuristic", "-h", type=click.Choice(HEURISTIC_NAMES, case_sensitive=False),
              help="The image-packing heuristic to use")
@click.option("--extension", "-e", type=click.Choice(IMAGE_EXTENSIONS, case_sensitive=False),
              help="Image format for atlas pages")
def pack(
    output: str,
    inputs: tuple,
    use_defaults: bool,
    xml: bool,
    binary: bool,
    as_json: bool,
    premultiply: bool,
    trim: bool,
    verbose: int,
    force: bool,
    unique: bool,
    rotate: bool,
    size: Optional[str],
    pad: Optional[int],
    heuristic: Optional[str],
    extension: Optional[str],
) -> None:
    """Pack images into one or more atlases.

    OUTPUT is the atlas base path; pages are written as OUTPUT0.png,
    OUTPUT1.png, ... next to the requested metadata files.

    Examples:
        atlaspack pack build/sprites assets/sprites -d
        atlaspack pack out/ui ui/*.png --rotate --heuristic BestAreaFit -j
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"])
            console.print(f"[red]Error: invalid setting {escape(field)}: {escape(err['msg'])}[/red]")
        sys.exit(1)
    setup_logging(verbosity_to_level(verbose), settings.log_file)

    if use_defaults:
        xml = premultiply = trim = unique = True

    overrides = {
        "premultiply": premultiply,
        "trim": trim,
        "unique": unique,
        "rotate": rotate,
        "xml": xml,
        "binary": binary,
        "json": as_json,
    }
    if size is not None:
        overrides["size"] = int(size)
    if pad is not None:
        overrides["pad"] = pad
    if heuristic is not None:
        overrides["heuristic"] = FreeRectChoiceHeuristic.parse(heuristic)
    if extension is not None:
        overrides["extension"] = extension

    try:
        options = PackOptions.from_settings(settings, **overrides)
    except AtlasError as e:
        logger.error(str(e))
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    output_path = Path(output)
    if not output_path.is_absolute() and settings.output_dir is not None:
        output_path = settings.output_dir / output_path

    try:
        packers = run_pack(output_path, [Path(p) for p in inputs], options, force=force)
    except CantFitError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if packers is None:
        console.print(f"Atlas is unchanged: {output_path.stem}")
        return

    if verbose:
        table = Table(title="Atlas Pages")
        table.add_column("Page")
        table.add_column("Size")
        table.add_column("Images", justify="right")
        table.add_column("Occupancy", justify="right")
        for idx, packer in enumerate(packers):
            table.add_row(
                f"{output_path.stem}{idx}",
                f"{packer.width}x{packer.height}",
                str(len(packer)),
                f"{packer.occupancy * 100:.1f}%",
            )
        console.print(table)


def run_pack(output_path: Path, inputs: list, options: PackOptions, force: bool = False):
    """
    Pack ``inputs`` into atlas pages and metadata next to ``output_path``.

    Returns:
        The finished packers, or None if the cached output is current

    Raises:
        CantFitError: If an image is larger than the atlas
    """
    from atlaspack.cache import compute_input_hash, is_up_to_date, remove_stale_outputs, write_hash
    from atlaspack.images import load_images
    from atlaspack.packer import pack_session
    from atlaspack.serial import Atlas

    output_dir = output_path.parent
    base_name = output_path.stem
    output_dir.mkdir(parents=True, exist_ok=True)

    hash_path = output_dir / f"{base_name}.hash"
    digest = compute_input_hash(options.to_dict(), inputs)
    if not force and is_up_to_date(hash_path, digest):
        logger.info(f"Atlas is unchanged: {base_name}")
        return None

    logger.debug(f"Options: {options.to_dict()}")
    remove_stale_outputs(output_dir, base_name, options.extension)

    logger.info("loading images...")
    images = load_images(inputs, premultiply=options.premultiply, trim=options.trim)

    packers = pack_session(
        images,
        options.size,
        pad=options.pad,
        unique=options.unique,
        rotate=options.rotate,
        heuristic=options.heuristic,
    )

    for idx, packer in enumerate(packers):
        page_path = output_dir / f"{base_name}{idx}.{options.extension}"
        logger.info(f"writing image {page_path}")
        packer.save(page_path)

    atlas = Atlas.from_packers(packers, base_name)
    if options.binary:
        atlas.write_binary(output_dir / f"{base_name}.bin")
    if options.xml:
        atlas.write_xml(output_dir / f"{base_name}.xml")
    if options.json:
        atlas.write_json(output_dir / f"{base_name}.json")

    write_hash(hash_path, digest)
    return packers


@cli.command()
@click.argument("metadata", type=click.Path(exists=True, dir_okay=False))
def info(metadata: str) -> None:
    """Show the contents of a .json or .bin atlas metadata file.

    Examples:
        atlaspack info build/sprites.json
    """
    import json

    from atlaspack.serial import Atlas

    path = Path(metadata)
    try:
        if path.suffix.lower() == ".bin":
            atlas = Atlas.from_bytes(path.read_bytes())
        else:
            atlas = Atlas.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (ValueError, KeyError) as e:
        console.print(f"[red]Error: could not read {path.name}: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"Atlas: {path.name}")
    table.add_column("Page")
    table.add_column("Image")
    table.add_column("Position")
    table.add_column("Size")
    table.add_column("Rotated")

    for texture in atlas.textures:
        for img in texture.images:
            table.add_row(
                texture.name,
                img.name,
                f"{img.x},{img.y}",
                f"{img.width}x{img.height}",
                "yes" if img.rotated else "-",
            )

    console.print(table)
    total = sum(len(t.images) for t in atlas.textures)
    console.print(f"Pages: {len(atlas.textures)}, images: {total}")


if __name__ == "__main__":
    cli()
