"""
Deploys a single IAmHere contract owned by a configurable address.

    deploykit deploy sample_modules/i_am_here.py --parameters sample_modules/i_am_here.json
"""
from deploykit import build_module

OWNER = "0x7C8F0a1c9F3B2d0E6b5A4c3D2e1F0a9B8c7D6e5F"


def declare(m):
    owner = m.get_parameter("owner", OWNER)
    i_am_here = m.contract("IAmHere", [owner])
    return {"iAmHere": i_am_here}


IAmHereModule = build_module("IAmHereModule", declare)
