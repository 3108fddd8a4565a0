import logging
import sys

import click
import coloredlogs

from pytss.cli.cli_common import set_color_flag, set_verbosity
from pytss.exceptions import EntryNotFoundError, MissingFieldError, NoSuchBuildIdentityError, TSSProtocolError, \
    TSSTransportError, TypeMismatchError

coloredlogs.install(level=logging.INFO)

logging.getLogger('urllib3.connectionpool').disabled = True

logger = logging.getLogger(__name__)

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'], max_content_width=400)

# Mapping of index options to import file names
CLI_GROUPS = {
    'tss': 'tss',
}


class PyTSSCli(click.Group):
    def list_commands(self, ctx):
        return CLI_GROUPS.keys()

    def get_command(self, ctx: click.Context, name: str) -> click.Command:
        if name not in CLI_GROUPS.keys():
            ctx.fail(f'No such command {name!r}')
        return self.import_and_get_command(ctx, name)

    @staticmethod
    def import_and_get_command(ctx: click.Context, name: str) -> click.Command:
        module_name = f'pytss.cli.{CLI_GROUPS[name]}'
        mod = __import__(module_name, None, None, ['cli'])
        command = mod.cli.get_command(ctx, name)
        if not command:
            command_name = mod.cli.list_commands(ctx)[0]
            command = mod.cli.get_command(ctx, command_name)
        return command


@click.command(cls=PyTSSCli, context_settings=CONTEXT_SETTINGS)
@click.option('-v', '--verbose', count=True, help='Increase logging verbosity (-v dumps TSS documents).')
@click.option('--color/--no-color', default=True)
def cli(verbose: int, color: bool) -> None:
    """
    \b
    Talk to Apple's TSS signing server: request tickets for a device and firmware build
    and extract signed blobs from the responses.
    """
    set_verbosity(verbose)
    set_color_flag(color)


def invoke_cli_with_error_handling() -> bool:
    """
    Invoke the command line interface and return `True` if the command failed.
    """
    try:
        cli()
    except MissingFieldError as e:
        logger.error(f'Missing required field {e.key} in {e.where}')
    except TypeMismatchError as e:
        logger.error(f'Field {e.key} in {e.where} is {e.actual}, expected {e.expected}')
    except NoSuchBuildIdentityError as e:
        logger.error(str(e))
    except TSSTransportError as e:
        if e.message is not None:
            logger.error(f'TSS server rejected the request (status={e.status}): {e.message}')
        else:
            logger.error(f'TSS request failed after {e.attempts} attempts: {e.transport_error}')
    except TSSProtocolError:
        logger.error('TSS server returned a malformed response')
    except EntryNotFoundError as e:
        logger.error(f'No such entry: {e.key}')
    else:
        return False
    return True


def main() -> None:
    if invoke_cli_with_error_handling():
        sys.exit(1)


if __name__ == '__main__':
    main()
