"""Client certificate used to authenticate with Android TVs."""

from __future__ import annotations

import asyncio
import os

import aiofiles
from androidtvremote2.certificate_generator import generate_selfsigned_cert

from .const import LOGGER


async def async_generate_cert_if_missing(client_name: str, certfile: str, keyfile: str) -> bool:
    """Generate client certificate and private key if missing.

    The pairing secret is derived from the certificate's public key, so an existing pair
    is never replaced. Missing parent directories are created and the key is readable by
    the owner only.

    :returns: True if a new certificate was generated.
    """
    if os.path.isfile(certfile) and os.path.isfile(keyfile):
        return False
    for path in (certfile, keyfile):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
    loop = asyncio.get_running_loop()
    cert_pem, key_pem = await loop.run_in_executor(None, generate_selfsigned_cert, client_name)
    async with aiofiles.open(certfile, "w", encoding="utf-8") as out:
        await out.write(cert_pem.decode("utf-8"))
    async with aiofiles.open(keyfile, "w", encoding="utf-8") as out:
        await out.write(key_pem.decode("utf-8"))
    os.chmod(keyfile, 0o600)
    LOGGER.debug("Generated client certificate %s for %s", certfile, client_name)
    return True
