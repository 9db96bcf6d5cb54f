import click

from geovote.surface import config
from geovote.surface import readers
from geovote.surface import surface
from geovote.surface.models import SurfaceError


@click.group(epilog="For detailed help on each command, run: geovote COMMAND --help")
def cli():
    """The geovote utility turns geo-located favorability votes into a
    density or interpolated score surface clipped to a study area."""
    pass


@cli.command()
@click.option('-c', '--config', help='Path to configuration file to create or replace')
def init(config):
    """Populates a configuration file based on user input."""
    click.echo(surface.banner())
    config = surface.init_config(config)
    click.echo(f'Initialized the surface configuration file {config}')


@cli.command()
@click.option('-c', '--config', 'config_filename', help='Path to configuration file to display', required=True)
def info(config_filename):
    """Summarizes the contents of a configuration file."""
    click.echo(surface.banner())
    configuration = config.configuration(config.config_parser_factory(config_filename), {})
    configuration.show()


@cli.command()
@click.option('-c', '--config', 'config_filename', help='Path to configuration file', required=True)
@click.option('-e', '--estimator', type=click.Choice(['kde', 'idw']), help='Surface estimator.')
@click.option('-b', '--bandwidth', type=float, help='Kernel bandwidth in meters.')
@click.option('-s', '--cell-size', type=float, help='Grid cell size in meters.')
@click.option('-o', '--output', 'output_file', help='Path of the surface JSON to write.')
@click.option('--raw', is_flag=True, help='Write raw values instead of normalized ones.')
def compute(config_filename, estimator, bandwidth, cell_size, output_file, raw):
    """Computes a surface based on configuration file contents."""
    click.echo(surface.banner())
    overrides = {
        'estimator': estimator,
        'bandwidth': bandwidth,
        'cell_size': cell_size,
        'output_file': output_file,
        'normalize': False if raw else None,
    }
    try:
        configuration = config.configuration(config.config_parser_factory(config_filename), overrides)
        surface.init_logging()
        grid = surface.compute(configuration)
    except (ValueError, SurfaceError, readers.ReaderError, config.ValidationError) as e:
        click.echo("\nUnable to compute surface: " + str(e))
        exit(1)
    click.echo(f'Computed a {grid.width}x{grid.height} surface using the configuration file {config_filename}')


if __name__ == "__main__":
    cli()
