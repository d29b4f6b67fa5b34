# -*- coding: utf-8 -*-
"""
Reading and writing of STRINGS, ILSTRINGS and DLSTRINGS string tables.

Layout (all integers are little-endian uint32):

    count | dataSize | directory[count] (id, offset) | data block (dataSize bytes)

A .STRINGS data entry is the string followed by a null byte. .ILSTRINGS and
.DLSTRINGS entries start with a 4-byte length (string bytes, null excluded)
and the directory offset points at that length field.

Strings are kept as str in memory. Files may be read as UTF-8 with a
Windows-1250, Windows-1251 or Windows-1252 fallback for entries that are not
valid UTF-8, and written in any of those encodings.
"""
import codecs
import io
import os
import struct
from enum import Enum

VERSION_MAJOR = 1
VERSION_MINOR = 1
VERSION_PATCH = 1

# Return codes ----------------------------------------------------------------
OK = 0
ERROR_INVALID_ARGS = 1
ERROR_NO_MEM = 2
ERROR_FILE_READ_FAIL = 3
ERROR_FILE_WRITE_FAIL = 4
ERROR_BAD_STRING = 5
RETURN_MAX = ERROR_BAD_STRING

HEADER_SIZE = 8
DIRECTORY_ENTRY_SIZE = 8
LENGTH_FIELD_SIZE = 4
MAX_UINT32 = 0xFFFFFFFF

DEFAULT_FALLBACK_ENCODING = "Windows-1252"
DEFAULT_TARGET_ENCODING = "UTF-8"

# Python codec name -> name shown to the user
SUPPORTED_ENCODINGS = {
    "utf-8": "UTF-8",
    "cp1250": "Windows-1250",
    "cp1251": "Windows-1251",
    "cp1252": "Windows-1252",
}


def get_version():
    return VERSION_MAJOR, VERSION_MINOR, VERSION_PATCH


def is_compatible(versionMajor, versionMinor, versionPatch):
    """Returns True if code written against the given version can use this one."""
    return versionMajor == 1 and versionMinor == 1 and versionPatch <= 1


# Errors ----------------------------------------------------------------------
class StringsError(Exception):
    """Base error carrying a numeric return code and a message."""
    code = None

    def __init__(self, message, code=None):
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self):
        return str(self)


class InvalidArgumentError(StringsError):
    code = ERROR_INVALID_ARGS


class OutOfMemoryError(StringsError):
    code = ERROR_NO_MEM


class FileReadError(StringsError):
    code = ERROR_FILE_READ_FAIL


class FileWriteError(StringsError):
    code = ERROR_FILE_WRITE_FAIL


class EncodingError(StringsError):
    code = ERROR_BAD_STRING


# File types ------------------------------------------------------------------
class FileVariant(Enum):
    SIMPLE = "simple"
    LENGTH_PREFIXED = "length_prefixed"


FILE_EXTENSIONS = {
    "strings": FileVariant.SIMPLE,
    "ilstrings": FileVariant.LENGTH_PREFIXED,
    "dlstrings": FileVariant.LENGTH_PREFIXED,
}


def get_file_variant(file_type):
    """
    Map a file type tag such as 'STRINGS', '.dlstrings' or 'ILSTRINGS' to its layout.

    Args:
        file_type (str): The tag, usually a file extension. Case is ignored.

    Returns:
        FileVariant: SIMPLE for STRINGS, LENGTH_PREFIXED for ILSTRINGS and DLSTRINGS.
    """
    if not isinstance(file_type, str) or not file_type:
        raise InvalidArgumentError("No file type given.")
    variant = FILE_EXTENSIONS.get(file_type.lower().lstrip("."))
    if variant is None:
        raise InvalidArgumentError(f"'{file_type}' is not a valid strings file type.")
    return variant


def get_file_variant_from_path(path):
    if not path:
        raise InvalidArgumentError("No path given.")
    extension = os.path.splitext(os.fspath(path))[1]
    if not extension:
        raise InvalidArgumentError(f"File passed does not have a valid extension: \"{path}\".")
    try:
        return get_file_variant(extension)
    except InvalidArgumentError:
        raise InvalidArgumentError(f"File passed does not have a valid extension: \"{path}\".") from None


# Text transcoding ------------------------------------------------------------
def normalize_encoding(encoding, allow_utf8=True):
    """
    Validate an encoding name and return the name used for display.

    Accepts the names used by the game tools ('Windows-1252', 'UTF-8') as well as
    Python codec aliases ('cp1252', 'utf8').
    """
    if not isinstance(encoding, str) or not encoding:
        raise InvalidArgumentError("No encoding given.")
    try:
        codec_name = codecs.lookup(encoding).name
    except LookupError:
        raise InvalidArgumentError(f"'{encoding}' is not a supported encoding.") from None
    if codec_name not in SUPPORTED_ENCODINGS or (codec_name == "utf-8" and not allow_utf8):
        raise InvalidArgumentError(f"'{encoding}' is not a supported encoding.")
    return SUPPORTED_ENCODINGS[codec_name]


def decode_text(raw_bytes, fallback_encoding=DEFAULT_FALLBACK_ENCODING):
    """
    Decode string bytes read from a strings file.

    Valid UTF-8 is always read as UTF-8, whatever the fallback. Anything else is
    read with the fallback code page. Bytes the code page leaves undefined are
    an error rather than being replaced.

    Args:
        raw_bytes (bytes): The string bytes without the null terminator.
        fallback_encoding (str): Code page to use for non UTF-8 strings.

    Returns:
        str: The decoded text.
    """
    try:
        return bytes(raw_bytes).decode("utf-8")
    except UnicodeDecodeError:
        pass
    try:
        return bytes(raw_bytes).decode(fallback_encoding)
    except UnicodeDecodeError as e:
        raise EncodingError(
            f"\"{bytes(raw_bytes)!r}\" cannot be decoded from {fallback_encoding}: byte 0x{raw_bytes[e.start]:02X} is undefined."
        ) from None


def encode_text(text, encoding=DEFAULT_TARGET_ENCODING):
    """Encode text for writing, refusing characters the encoding cannot hold."""
    if "\x00" in text:
        raise EncodingError(f"\"{text}\" contains a null character and cannot be stored.")
    try:
        return text.encode(encoding)
    except UnicodeEncodeError:
        raise EncodingError(f"\"{text}\" cannot be encoded in {encoding}.") from None


# Read and write binary structs -----------------------------------------------
def readUInt32(file):
    chunk = file.read(4)
    if len(chunk) != 4:
        raise FileReadError("Unexpected end of data while reading a 32-bit value.")
    return struct.unpack('<I', chunk)[0]


def writeUInt32(file, value): file.write(struct.pack('<I', value))


def readNullString(offset, data):
    """Reads a null-terminated string from the data block at the given offset.

    Args:
        offset (int): The offset within the data block where the string starts.
        data (bytes): The data block.

    Returns:
        bytes: The string bytes without the terminator.
    """
    if offset > len(data):
        raise FileReadError(f"String offset {offset} lies outside the data block ({len(data)} bytes).")
    null_index = data.find(b"\x00", offset)
    if null_index < 0:
        raise FileReadError(f"String at offset {offset} has no null terminator.")
    return data[offset:null_index]


def check_file_variant(variant):
    if not isinstance(variant, FileVariant):
        raise InvalidArgumentError(f"{variant!r} is not a file variant.")
    return variant


def string_start(offset, variant):
    if variant is FileVariant.LENGTH_PREFIXED:
        return offset + LENGTH_FIELD_SIZE
    return offset


# Decoding --------------------------------------------------------------------
class RawTable:
    """Directory and data block of a strings file, before any text decoding."""

    def __init__(self, variant, directory=None, data=b""):
        self.variant = variant
        self.directory = directory if directory is not None else []
        self.data = data

    @property
    def offsets(self):
        return {offset for _, offset in self.directory}


def read_raw_table(content, variant):
    """
    Split the bytes of a strings file into its directory and data block.

    Args:
        content (bytes): The whole file.
        variant (FileVariant): The file layout.

    Returns:
        RawTable: Directory entries in file order and the data block.
    """
    check_file_variant(variant)
    fileSize = len(content)
    if fileSize < HEADER_SIZE:
        raise FileReadError(f"File is {fileSize} bytes long, too short for a strings file header.")

    stream = io.BytesIO(content)
    count = readUInt32(stream)
    dataSize = readUInt32(stream)
    startOfData = HEADER_SIZE + DIRECTORY_ENTRY_SIZE * count
    if startOfData > fileSize:
        raise FileReadError(f"Directory of {count} entries does not fit in a file of {fileSize} bytes.")
    if startOfData + dataSize > fileSize:
        raise FileReadError(
            f"Data block of {dataSize} bytes declared, but only {fileSize - startOfData} bytes follow the directory."
        )
    if startOfData + dataSize < fileSize:
        print(f"Warning: ignoring {fileSize - startOfData - dataSize} bytes after the end of the data block.")

    directory = []
    for index in range(count):
        stringId = readUInt32(stream)
        stringOffset = readUInt32(stream)
        directory.append((stringId, stringOffset))

    return RawTable(variant, directory, content[startOfData:startOfData + dataSize])


def decode_strings_data(raw_table, fallback_encoding=DEFAULT_FALLBACK_ENCODING):
    """Resolve every directory entry to its text. Later duplicates of an id win."""
    strings = {}
    for stringId, stringOffset in raw_table.directory:
        start = string_start(stringOffset, raw_table.variant)
        strings[stringId] = decode_text(readNullString(start, raw_table.data), fallback_encoding)
    return strings


def scan_unreferenced_strings(raw_table, fallback_encoding=DEFAULT_FALLBACK_ENCODING):
    """
    Walk the data block entry by entry and return strings no directory entry points to.

    Entries are not stored in directory order, so the block is read front to
    back instead of following the offsets. For length-prefixed files the length
    field is skipped and the string still ends at its null byte.

    Returns:
        list[str]: Unreferenced strings in the order they appear, without repeats.
    """
    data = raw_table.data
    dataSize = len(data)
    offsets = raw_table.offsets
    unreferenced = {}
    pos = 0
    while pos < dataSize:
        start = string_start(pos, raw_table.variant)
        if start > dataSize:
            raise FileReadError(f"Entry at offset {pos} runs past the end of the data block.")
        textLine = readNullString(start, data)
        if pos not in offsets:
            unreferenced.setdefault(decode_text(textLine, fallback_encoding), None)
        pos = start + len(textLine) + 1
    return list(unreferenced)


# Encoding --------------------------------------------------------------------
def frame_string(encoded, variant):
    if variant is FileVariant.LENGTH_PREFIXED:
        return struct.pack('<I', len(encoded)) + encoded + b'\x00'
    return encoded + b'\x00'


def encode_strings_data(strings, variant, encoding=DEFAULT_TARGET_ENCODING):
    """
    Build the bytes of a strings file from an id to text mapping.

    Ids are written in ascending order. Strings whose framed bytes are
    identical are stored once and share an offset.

    Args:
        strings (dict): Mapping of string id to text.
        variant (FileVariant): The layout to write.
        encoding (str): Target encoding for every string.

    Returns:
        bytes: The complete file contents.
    """
    check_file_variant(variant)
    encoding = normalize_encoding(encoding)
    directory = []
    stringData = bytearray()
    writtenOffsets = {}

    for stringId in sorted(strings):
        framed = frame_string(encode_text(strings[stringId], encoding), variant)
        stringOffset = writtenOffsets.get(framed)
        if stringOffset is None:
            stringOffset = len(stringData)
            stringData += framed
            writtenOffsets[framed] = stringOffset
        directory.append((stringId, stringOffset))

    out = io.BytesIO()
    writeUInt32(out, len(directory))
    writeUInt32(out, len(stringData))
    for stringId, stringOffset in directory:
        out.write(struct.pack('<II', stringId, stringOffset))
    out.write(stringData)
    return out.getvalue()


# String tables ---------------------------------------------------------------
def check_string_id(stringId):
    if isinstance(stringId, bool) or not isinstance(stringId, int) or not 0 <= stringId <= MAX_UINT32:
        raise InvalidArgumentError(f"{stringId!r} is not a valid string ID.")
    return stringId


def check_string(text):
    if not isinstance(text, str):
        raise InvalidArgumentError(f"{text!r} is not a string.")
    return text


class StringTable:
    """
    The strings of one STRINGS, ILSTRINGS or DLSTRINGS file.

    The table is not thread safe. Unreferenced strings always describe the file
    as it was loaded; editing the table does not change them and saving never
    writes them.
    """

    def __init__(self, variant, strings=None, raw_table=None, fallback_encoding=DEFAULT_FALLBACK_ENCODING):
        self.variant = check_file_variant(variant)
        self.fallback_encoding = fallback_encoding
        self.path = None
        self._strings = {}
        if strings:
            self.set_all(strings.items() if hasattr(strings, "items") else strings)
        self._raw_table = raw_table

    @classmethod
    def from_bytes(cls, content, variant, fallback_encoding=DEFAULT_FALLBACK_ENCODING):
        fallback_encoding = normalize_encoding(fallback_encoding, allow_utf8=False)
        if content is None:
            return cls(variant, fallback_encoding=fallback_encoding)
        raw_table = read_raw_table(content, variant)
        strings = decode_strings_data(raw_table, fallback_encoding)
        table = cls(variant, strings, raw_table, fallback_encoding)
        # A data block that cannot be walked is rejected at load time.
        scan_unreferenced_strings(raw_table, fallback_encoding)
        return table

    @classmethod
    def open(cls, path, fallback_encoding=DEFAULT_FALLBACK_ENCODING):
        """
        Open a strings file. A path that does not exist gives an empty table.

        Args:
            path (str): Path ending in .STRINGS, .ILSTRINGS or .DLSTRINGS (any case).
            fallback_encoding (str): Code page for strings that are not valid UTF-8.
        """
        variant = get_file_variant_from_path(path)
        content = None
        if os.path.exists(path):
            try:
                with open(path, 'rb') as stringsIn:
                    content = stringsIn.read()
            except MemoryError as e:
                raise OutOfMemoryError(f"Not enough memory to read \"{path}\": {e}") from e
            except OSError as e:
                raise FileReadError(f"Could not read contents of \"{path}\": {e}") from e
        try:
            table = cls.from_bytes(content, variant, fallback_encoding)
        except MemoryError as e:
            raise OutOfMemoryError(f"Not enough memory to parse \"{path}\".") from e
        table.path = path
        return table

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        self._strings = {}
        self._raw_table = None

    def __len__(self):
        return len(self._strings)

    def __contains__(self, stringId):
        return stringId in self._strings

    def get_all(self):
        return sorted(self._strings.items())

    def get_unreferenced(self):
        if self._raw_table is None:
            return []
        return scan_unreferenced_strings(self._raw_table, self.fallback_encoding)

    def get_one(self, stringId):
        check_string_id(stringId)
        if stringId not in self._strings:
            raise InvalidArgumentError(f"The string ID {stringId} does not exist.")
        return self._strings[stringId]

    def set_all(self, pairs):
        """Replace every string in the table. Nothing changes if an ID repeats."""
        if pairs is None:
            raise InvalidArgumentError("No strings given.")
        strings = {}
        try:
            for stringId, text in pairs:
                check_string_id(stringId)
                check_string(text)
                if stringId in strings:
                    raise InvalidArgumentError(f"The string ID {stringId} is given more than once.")
                strings[stringId] = text
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"Strings must be given as (ID, string) pairs: {e}") from None
        self._strings = strings

    def add(self, stringId, text):
        check_string_id(stringId)
        check_string(text)
        if stringId in self._strings:
            raise InvalidArgumentError(f"The string ID {stringId} already exists.")
        self._strings[stringId] = text

    def replace(self, stringId, text):
        check_string_id(stringId)
        check_string(text)
        if stringId not in self._strings:
            raise InvalidArgumentError(f"The string ID {stringId} does not exist.")
        self._strings[stringId] = text

    def remove(self, stringId):
        check_string_id(stringId)
        if stringId not in self._strings:
            raise InvalidArgumentError(f"The string ID {stringId} does not exist.")
        del self._strings[stringId]

    def to_bytes(self, encoding=DEFAULT_TARGET_ENCODING, variant=None):
        if variant is None:
            variant = self.variant
        return encode_strings_data(self._strings, variant, encoding)

    def save(self, path, encoding=DEFAULT_TARGET_ENCODING, variant=None):
        """
        Write the table to path. The file is written in place, not replaced atomically.

        Args:
            path (str): Output path.
            encoding (str): 'UTF-8', 'Windows-1250', 'Windows-1251' or 'Windows-1252'.
            variant (FileVariant): Layout to write. Defaults to the one matching the path's extension.
        """
        if variant is None:
            variant = get_file_variant_from_path(path)
        content = self.to_bytes(encoding, variant)
        try:
            with open(path, 'wb') as stringsOut:
                stringsOut.write(content)
        except OSError as e:
            raise FileWriteError(f"Could not write to \"{path}\": {e}") from e
        numIndexes, dataSize = struct.unpack_from('<II', content)
        print(f"[save]: Number of Indexes: {numIndexes}")
        print(f"[save]: Data Size: {dataSize}")


def open_strings(path, fallback_encoding=DEFAULT_FALLBACK_ENCODING):
    return StringTable.open(path, fallback_encoding)
