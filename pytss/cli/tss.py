import logging
import plistlib
from pathlib import Path
from typing import IO, Optional

import click

from pytss.build_identity import BuildManifest
from pytss.cli.cli_common import BASED_INT, HEX_BYTES, TSS_SERVER_ENV_VAR, print_hex, print_json
from pytss.request import TSSRequest
from pytss.response import AP_IMG4_TICKET, TICKET_KEYS, TSSResponse
from pytss.transport import TSSTransport
from pytss.utils import ecid_to_string

logger = logging.getLogger(__name__)


def load_response(shsh: IO) -> TSSResponse:
    return TSSResponse(plistlib.load(shsh))


@click.group()
def cli() -> None:
    pass


@cli.group()
def tss() -> None:
    """ Request and inspect signing tickets from Apple's TSS server """
    pass


@tss.command('request')
@click.argument('build_manifest', type=click.File('rb'))
@click.option('--ecid', type=BASED_INT, required=True, help='Device ECID (decimal or 0x-prefixed hex).')
@click.option('--device-class', help='Board config used to select the build identity, e.g. n71ap.')
@click.option('--variant', help='Build identity variant, e.g. "Customer Erase Install".')
@click.option('--ap-nonce', type=HEX_BYTES, help='ApNonce as hex.')
@click.option('--sep-nonce', type=HEX_BYTES, help='ApSepNonce as hex (Img4 only).')
@click.option('--security-mode', type=BASED_INT, default=1, show_default=True, help='ApSecurityMode (Img4 only).')
@click.option('--production-mode/--development-mode', default=True, show_default=True)
@click.option('--img3', is_flag=True, help='Request a legacy APTicket instead of an ApImg4Ticket.')
@click.option('--baseband', is_flag=True, help='Also request a BBTicket.')
@click.option('--bb-nonce', type=HEX_BYTES, help='BbNonce as hex.')
@click.option('--bb-gold-cert-id', type=BASED_INT, help='BbGoldCertId.')
@click.option('--bb-snum', type=HEX_BYTES, help='BbSNUM as hex.')
@click.option('--server-url', envvar=TSS_SERVER_ENV_VAR, help='Use this server instead of the Apple endpoints.')
@click.option('--timeout', type=float, help='Per-attempt HTTP timeout in seconds.')
@click.option('-o', '--out', type=click.Path(dir_okay=False, path_type=Path),
              help='Output SHSH plist. Defaults to <ECID>.shsh')
def tss_request(build_manifest: IO, ecid: int, device_class: Optional[str], variant: Optional[str],
                ap_nonce: Optional[bytes], sep_nonce: Optional[bytes], security_mode: int, production_mode: bool,
                img3: bool, baseband: bool, bb_nonce: Optional[bytes], bb_gold_cert_id: Optional[int],
                bb_snum: Optional[bytes], server_url: Optional[str], timeout: Optional[float],
                out: Optional[Path]) -> None:
    """ Build a TSS request from a BuildManifest and save the signed response """
    if not ecid:
        raise click.BadParameter('ECID must be non-zero', param_hint='--ecid')

    build_identity = BuildManifest(build_manifest.read()).get_build_identity(device_class=device_class,
                                                                             variant=variant)
    logger.info(f'using build identity {build_identity.device_class} ({build_identity.variant})')

    parameters = {
        'ApECID': ecid,
        'ApProductionMode': production_mode,
        'ApSecurityMode': security_mode,
        'ApNonce': ap_nonce,
        'ApSepNonce': sep_nonce,
        'BbNonce': bb_nonce,
        'BbGoldCertId': bb_gold_cert_id,
        'BbSNUM': bb_snum,
    }
    parameters = {k: v for k, v in parameters.items() if v is not None}

    if img3:
        request = TSSRequest()
        request.add_ap_tags_from_manifest(build_identity)
        request.add_ap_img3_tags(parameters)
    else:
        request = TSSRequest({'ApECID': ecid, 'ApProductionMode': production_mode})
        request.add_ap_tags_from_manifest(build_identity)
        request.add_ap_img4_tags(parameters)

    if baseband:
        request.add_baseband_tags_from_manifest(build_identity)
        request.add_baseband_tags(parameters)

    with TSSTransport(timeout=timeout) as transport:
        response = transport.submit(request, server_url)

    if out is None:
        out = Path(f'{ecid_to_string(ecid)}.shsh')
    with out.open('wb') as fd:
        plistlib.dump(dict(response), fd)

    print_json({
        'ECID': ecid,
        'Entries': list(response.keys()),
        'Output': str(out),
    })


@tss.command('ticket')
@click.argument('shsh', type=click.File('rb'))
@click.option('-k', '--key', type=click.Choice(TICKET_KEYS), default=AP_IMG4_TICKET, show_default=True)
@click.option('-o', '--out', type=click.File('wb'), help='Write the raw ticket instead of a hexdump.')
def tss_ticket(shsh: IO, key: str, out: Optional[IO]) -> None:
    """ Extract a ticket from a saved TSS response """
    ticket = load_response(shsh).get_ticket(key)
    if out is not None:
        out.write(ticket)
    else:
        print_hex(ticket)


@tss.command('path')
@click.argument('shsh', type=click.File('rb'))
@click.argument('entry')
def tss_path(shsh: IO, entry: str) -> None:
    """ Print the firmware path the server assigned to ENTRY """
    path = load_response(shsh).get_path_by_entry(entry)
    if path is None:
        logger.info(f'{entry} has no path')
    else:
        print(path)


@tss.command('blob')
@click.argument('shsh', type=click.File('rb'))
@click.option('-e', '--entry', help='Component name, e.g. KernelCache.')
@click.option('-p', '--path', help='Firmware path, e.g. kernelcache.release.n71')
@click.option('-o', '--out', type=click.File('wb'), help='Write the raw blob instead of a hexdump.')
def tss_blob(shsh: IO, entry: Optional[str], path: Optional[str], out: Optional[IO]) -> None:
    """ Extract a per-component signed blob from a saved TSS response """
    if (entry is None) == (path is None):
        raise click.UsageError('exactly one of --entry and --path is required')

    response = load_response(shsh)
    blob = response.get_blob_by_entry(entry) if entry is not None else response.get_blob_by_path(path)
    if out is not None:
        out.write(blob)
    else:
        print_hex(blob)
