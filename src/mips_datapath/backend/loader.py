import logging
import re
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from mips_datapath.backend.schemes import WORD_MASK, WORD_SIZE_BYTES, DEFAULT_DATA_WORDS, unpack_words
from mips_datapath.backend.assembler import AssemblerError, assemble_source

# Connect to the UI logger
clean_out = logging.getLogger('mips.clean')
raw_out = logging.getLogger('mips.raw')

MAX_WORDS = DEFAULT_DATA_WORDS


class LoaderError(Exception):
    """Program or data image that cannot be loaded."""
    pass


class FileType(Enum):
    ASSEMBLY = "assembly"  # .asm, .s
    HEX = "hex"            # .hex, .txt
    BINARY = "binary"      # .bin

    def __str__(self):
        return self.value


EXTENSIONS = {
    FileType.ASSEMBLY: ['.asm', '.s'],
    FileType.HEX: ['.hex', '.txt'],
    FileType.BINARY: ['.bin'],
}


def validate_payload(data: bytearray, max_words: int = MAX_WORDS) -> bytearray:
    """Checks size and alignment of a raw binary image."""
    # 1. Alignment Check
    if len(data) % WORD_SIZE_BYTES != 0:
        padding = WORD_SIZE_BYTES - (len(data) % WORD_SIZE_BYTES)
        clean_out.warning(f"Padding binary with {padding} bytes for alignment.")
        data += b'\x00' * padding

    # 2. Size Check
    word_count = len(data) // WORD_SIZE_BYTES
    if word_count > max_words:
        raise LoaderError(f"Image too large: {word_count} words. Max allowed is {max_words}.")
    clean_out.info(f"- Checked image size: {word_count}/{max_words} words (OK)")
    return data


def parse_hex_words(text: str) -> List[int]:
    """One or more hex words per line; '#' and '//' start comments."""
    words = []
    for line_no, line in enumerate(text.splitlines(), start=1):
        line = re.split(r'#|//', line, maxsplit=1)[0]
        for token in line.split():
            try:
                value = int(token, 16)
            except ValueError:
                raise LoaderError(f"line {line_no}: invalid hex word '{token}'") from None
            if not 0 <= value <= WORD_MASK:
                raise LoaderError(f"line {line_no}: '{token}' does not fit in 32 bits")
            words.append(value)
    return words


class FileLoader:
    @staticmethod
    def detect_type(file_path: Union[str, Path]) -> FileType:
        """Detect file type from extension"""
        suffix = Path(file_path).suffix.lower()
        for file_type, extensions in EXTENSIONS.items():
            if suffix in extensions:
                return file_type
        raise LoaderError(f"Unknown file type: '{suffix}' ({file_path})")

    @staticmethod
    def list_files(directory: Union[str, Path], file_type: Optional[FileType] = None) -> List[str]:
        """List image files in `directory`, optionally restricted to one type"""
        target_dir = Path(directory)
        if not target_dir.exists():
            clean_out.warning(f"Directory not found: {target_dir}")
            return []

        if file_type is None:
            extensions = [ext for exts in EXTENSIONS.values() for ext in exts]
        else:
            extensions = EXTENSIONS[file_type]

        files = sorted(str(f) for f in target_dir.iterdir() if f.suffix.lower() in extensions)
        clean_out.info(f"Found {len(files)} files in {target_dir}")
        return files

    @staticmethod
    def load_text(file_path: Union[str, Path]) -> str:
        with open(file_path, 'r', encoding='utf-8') as f:
            return f.read()

    @classmethod
    def load_words(cls, file_path: Union[str, Path], little_endian: bool = True,
                   max_words: int = MAX_WORDS) -> List[int]:
        """Universal loader - returns the image as a list of 32-bit words"""
        file_type = cls.detect_type(file_path)
        clean_out.info(f"Loading {file_type} image {file_path}")

        try:
            if file_type == FileType.BINARY:
                with open(file_path, 'rb') as f:
                    data = validate_payload(bytearray(f.read()), max_words)
                words = unpack_words(bytes(data), len(data) // WORD_SIZE_BYTES, little_endian)
            elif file_type == FileType.HEX:
                words = parse_hex_words(cls.load_text(file_path))
            else:
                words = assemble_source(cls.load_text(file_path))
        except OSError as e:
            raise LoaderError(f"Cannot read {file_path}: {e}") from e
        except AssemblerError as e:
            raise LoaderError(f"Assembly of {file_path} failed: {e}") from e

        if len(words) > max_words:
            raise LoaderError(f"Image too large: {len(words)} words. Max allowed is {max_words}.")

        for i in range(0, len(words), 8):
            raw_out.info(' '.join(f'{w:08X}' for w in words[i:i + 8]))
        clean_out.info(f"Loaded {len(words)} words from {file_path}")
        return words
