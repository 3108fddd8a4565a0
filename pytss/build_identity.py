import plistlib
from collections import UserDict
from typing import Mapping, Optional, Union

from cached_property import cached_property

from pytss.exceptions import NoSuchBuildIdentityError
from pytss.utils import hex_to_uint


class BuildIdentity(UserDict):
    def __init__(self, build_manifest, data: Mapping):
        super().__init__(data)
        self.build_manifest = build_manifest

    @cached_property
    def device_class(self) -> str:
        return self.get('Info', {}).get('DeviceClass', '').lower()

    @cached_property
    def variant(self) -> Optional[str]:
        return self.get('Info', {}).get('Variant')

    @cached_property
    def manifest(self) -> dict:
        return self['Manifest']

    @cached_property
    def ap_chip_id(self) -> int:
        return hex_to_uint(self['ApChipID'])

    @cached_property
    def ap_board_id(self) -> int:
        return hex_to_uint(self['ApBoardID'])

    @cached_property
    def has_baseband(self) -> bool:
        return 'BbChipID' in self and self.has_component('BasebandFirmware')

    def has_component(self, name: str) -> bool:
        return name in self.manifest

    def get_component_path(self, component: str) -> str:
        return self.manifest[component]['Info']['Path']


class BuildManifest:
    def __init__(self, manifest: Union[bytes, Mapping]):
        self._manifest = plistlib.loads(manifest) if isinstance(manifest, bytes) else manifest
        self._parse_build_identities()

    @cached_property
    def product_version(self) -> Optional[str]:
        return self._manifest.get('ProductVersion')

    @cached_property
    def product_build_version(self) -> Optional[str]:
        return self._manifest.get('ProductBuildVersion')

    @cached_property
    def supported_product_types(self) -> list:
        return self._manifest.get('SupportedProductTypes', [])

    def get_build_identity(self, device_class: Optional[str] = None, variant: Optional[str] = None,
                           chip_id: Optional[int] = None, board_id: Optional[int] = None) -> BuildIdentity:
        for build_identity in self.build_identities:
            if device_class is not None and build_identity.device_class != device_class.lower():
                continue

            if variant is not None and variant not in (build_identity.variant or ''):
                continue

            if chip_id is not None and build_identity.ap_chip_id != chip_id:
                continue

            if board_id is not None and build_identity.ap_board_id != board_id:
                continue

            return build_identity
        raise NoSuchBuildIdentityError('failed to find the correct BuildIdentity from the BuildManifest')

    def _parse_build_identities(self) -> None:
        self.build_identities = []
        for build_identity in self._manifest['BuildIdentities']:
            self.build_identities.append(BuildIdentity(self, build_identity))
