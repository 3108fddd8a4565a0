import copy
import logging
import typing
from uuid import uuid4

from pytss.document import get_optional_value, get_value, is_uint, merge, type_name
from pytss.exceptions import MissingFieldError, TypeMismatchError
from pytss.utils import hex_to_uint, host_platform, plist_access_path

TSS_CLIENT_VERSION_STRING = "libauthinstall-293.1.16"
TSS_LOCALITY = "en_US"

# only requested through the baseband or diagnostics flows
SKIPPED_MANIFEST_ENTRIES = ("BasebandFirmware", "Diags", "OS")

BASEBAND_KEY_HASHES = (
    "BbProvisioningManifestKeyHash",
    "BbActivationManifestKeyHash",
    "BbCalibrationManifestKeyHash",
    "BbFactoryActivationManifestKeyHash",
    "BbSkeyId",
)

logger = logging.getLogger(__name__)


def _require_parameters(parameters: typing.Optional[typing.Mapping], what: str) -> typing.Mapping:
    if parameters is None:
        logger.error(f"Missing required {what} parameters")
        raise MissingFieldError(f"{what} parameters", "arguments")
    return parameters


def _get_hex_uint(build_identity: typing.Mapping, key: str) -> int:
    value = get_value(build_identity, key, str, "build identity")
    try:
        result = hex_to_uint(value)
    except ValueError:
        result = None
    if result is None or not is_uint(result):
        logger.error(f"Unable to decode {key} value {value!r} as a 64-bit hex value")
        raise TypeMismatchError(key, "hex string", repr(value), "build identity")
    return result


class TSSRequest:
    """
    TSS request document builder.

    Every ``add_*`` method validates all of its fields before touching the request, so a failing call leaves the
    request exactly as it was.
    """

    def __init__(self, overrides: typing.Optional[typing.Mapping] = None):
        self._request: dict[str, typing.Any] = {
            "@Locality": TSS_LOCALITY,
            "@HostPlatformInfo": host_platform(),
            "@VersionInfo": TSS_CLIENT_VERSION_STRING,
            "@UUID": str(uuid4()).upper(),
        }
        merge(self._request, overrides)

    def __getitem__(self, key: str) -> typing.Any:
        return self._request[key]

    def __contains__(self, key: str) -> bool:
        return key in self._request

    def get(self, key: str, default=None) -> typing.Any:
        return self._request.get(key, default)

    def as_dict(self) -> dict:
        return copy.deepcopy(self._request)

    def add_ap_img4_tags(self, parameters: typing.Mapping) -> None:
        parameters = _require_parameters(parameters, "AP")
        tags = {"ApNonce": get_value(parameters, "ApNonce", bytes), "@ApImg4Ticket": True}

        if "ApSecurityMode" not in self._request:
            tags["ApSecurityMode"] = get_value(parameters, "ApSecurityMode", int)

        tags["ApSepNonce"] = get_value(parameters, "ApSepNonce", bytes)
        self._request.update(copy.deepcopy(tags))

    def add_ap_img3_tags(self, parameters: typing.Mapping) -> None:
        parameters = _require_parameters(parameters, "AP")
        tags = {}

        nonce = get_optional_value(parameters, "ApNonce", bytes)
        if nonce is not None:
            tags["ApNonce"] = nonce
        tags["@APTicket"] = True

        tags["ApECID"] = get_value(parameters, "ApECID", int)
        if tags["ApECID"] == 0:
            logger.warning("ApECID is zero, the server is unlikely to personalize this request")

        # populated by add_ap_tags_from_manifest()
        for key in ("ApBoardID", "ApChipID", "ApSecurityDomain"):
            get_value(self._request, key, int, "request")

        tags["ApProductionMode"] = get_value(parameters, "ApProductionMode", bool)
        self._request.update(copy.deepcopy(tags))

    def add_baseband_tags(self, parameters: typing.Mapping) -> None:
        parameters = _require_parameters(parameters, "baseband")
        tags = {
            "BbNonce": get_value(parameters, "BbNonce", bytes),
            "@BBTicket": True,
            "BbGoldCertId": get_value(parameters, "BbGoldCertId", int),
            "BbSNUM": get_value(parameters, "BbSNUM", bytes),
        }
        self._request.update(copy.deepcopy(tags))

    def add_ap_tags_from_manifest(self, build_identity: typing.Mapping,
                                  overrides: typing.Optional[typing.Mapping] = None) -> None:
        tags = {"UniqueBuildID": get_value(build_identity, "UniqueBuildID", bytes, "build identity")}
        for key in ("ApChipID", "ApBoardID", "ApSecurityDomain"):
            tags[key] = _get_hex_uint(build_identity, key)

        manifest = get_value(build_identity, "Manifest", dict, "build identity")

        # add components to request
        for key, manifest_entry in manifest.items():
            if not isinstance(manifest_entry, dict):
                logger.error(f"Unable to fetch BuildManifest entry {key}")
                raise TypeMismatchError(key, "dict", type_name(manifest_entry), "build manifest")

            if key in SKIPPED_MANIFEST_ENTRIES:
                continue

            # copy this entry
            tss_entry = copy.deepcopy(manifest_entry)

            # remove obsolete Info node
            tss_entry.pop("Info", None)

            # signal Img4 support
            tss_entry["EPRO"] = True
            tss_entry["ESEC"] = True

            tags[key] = tss_entry

        self._request.update(tags)
        merge(self._request, overrides)

    def add_baseband_tags_from_manifest(self, build_identity: typing.Mapping,
                                        overrides: typing.Optional[typing.Mapping] = None) -> None:
        tags = {"BbChipID": _get_hex_uint(build_identity, "BbChipID")}

        for key in BASEBAND_KEY_HASHES:
            value = build_identity.get(key)
            if isinstance(value, bytes):
                tags[key] = value
            else:
                logger.warning(f"Unable to find {key} node")

        bbfw = plist_access_path(build_identity, ("Manifest", "BasebandFirmware"), dict)
        if bbfw is None:
            logger.error("Unable to get BasebandFirmware node")
            raise MissingFieldError("Manifest.BasebandFirmware", "build identity")
        tags["BasebandFirmware"] = bbfw

        self._request.update(copy.deepcopy(tags))
        merge(self._request, overrides)

    def remove_key(self, key: str) -> None:
        if key in self._request:
            self._request.pop(key)

    def update(self, options: typing.Mapping) -> None:
        merge(self._request, options)
