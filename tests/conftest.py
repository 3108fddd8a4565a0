import logging

import pytest

logging.getLogger('urllib3.connectionpool').disabled = True

UNIQUE_BUILD_ID = bytes.fromhex('a1b2c3d4e5f60718293a4b5c6d7e8f90a1b2c3d4')


@pytest.fixture(scope='function')
def build_identity() -> dict:
    """
    Minimal build identity of an Img4 device with a baseband.
    """
    return {
        'ApBoardID': '0x0C',
        'ApChipID': '0x8010',
        'ApSecurityDomain': '0x01',
        'BbChipID': '0x1F30E1',
        'BbProvisioningManifestKeyHash': b'\x01' * 32,
        'BbActivationManifestKeyHash': b'\x02' * 32,
        'BbCalibrationManifestKeyHash': b'\x03' * 32,
        'BbFactoryActivationManifestKeyHash': b'\x04' * 32,
        'UniqueBuildID': UNIQUE_BUILD_ID,
        'Info': {
            'DeviceClass': 'D10AP',
            'Variant': 'Customer Erase Install (IPSW)',
        },
        'Manifest': {
            'KernelCache': {
                'Digest': b'\x10' * 48,
                'Info': {'Path': 'kernelcache.release.iphone9'},
                'Trusted': True,
            },
            'LLB': {
                'Digest': b'\x11' * 48,
                'Info': {'Path': 'Firmware/all_flash/LLB.d10.RELEASE.im4p'},
                'Trusted': True,
            },
            'BasebandFirmware': {
                'Info': {'Path': 'Firmware/Mav17-1.00.00.Release.bbfw'},
                'eDBL-Blob': b'\x20' * 16,
            },
            'Diags': {
                'Digest': b'\x12' * 48,
                'Info': {'Path': 'Firmware/diag.d10.im4p'},
            },
            'OS': {
                'Digest': b'\x13' * 48,
                'Info': {'Path': 'rootfs.dmg'},
            },
        },
    }


@pytest.fixture(scope='function')
def parameters() -> dict:
    """
    Device identity parameters as read from a device in recovery mode.
    """
    return {
        'ApECID': 0x1A2B3C4D5E6F,
        'ApNonce': b'\xaa' * 32,
        'ApSepNonce': b'\xbb' * 20,
        'ApSecurityMode': 1,
        'ApProductionMode': True,
        'BbNonce': b'\xcc' * 20,
        'BbGoldCertId': 0x5CF2EC4E,
        'BbSNUM': b'\xdd' * 4,
    }
