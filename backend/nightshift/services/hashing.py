import asyncio
import hashlib

CHUNK_SIZE = 1024 * 1024


def compute_file_hash(file_path: str, chunk_size: int = CHUNK_SIZE) -> str:
    """
    stream a file through sha256 and return the lowercase hex digest
    raises OSError when the file cannot be read (missing, locked, dropped share)
    """
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for byte_block in iter(lambda: f.read(chunk_size), b""):
            sha256_hash.update(byte_block)
    return sha256_hash.hexdigest()


async def hash_file_async(file_path: str, chunk_size: int = CHUNK_SIZE) -> str:
    """compute_file_hash in a worker thread so large files don't stall the loop"""
    return await asyncio.to_thread(compute_file_hash, file_path, chunk_size)
