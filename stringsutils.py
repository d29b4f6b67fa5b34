# -*- coding: utf-8 -*-
import os
import re
from datetime import datetime, timezone

import icu

import stringsfile

# Matches the plugin and language parts of names like 'Skyrim_English.STRINGS' or 'Dawnguard_french_tagged_text.txt'
reStringsFilename = re.compile(r'^([A-Za-z0-9]+)_([A-Za-z]+)(?:_(.*?))?\.([A-Za-z]+)$')

# Matches escapes written into tagged text files: \\, \n and \r
reTaggedEscape = re.compile(r'\\([\\nr])')

# Language names used in strings filenames -> ICU locale
ICU_LOCALE_MAP = {
    "english": "en_US",
    "french": "fr_FR",
    "german": "de_DE",
    "italian": "it_IT",
    "spanish": "es_ES",
    "polish": "pl_PL",
    "russian": "ru_RU",
    "czech": "cs_CZ",
    "japanese": "ja_JP",
    "chinese": "zh_CN",
    "portuguese": "pt_BR",
    "turkish": "tr_TR",
}

# Code page that files in each language fall back to when a string is not UTF-8
FALLBACK_ENCODING_MAP = {
    "pl": "Windows-1250",
    "cs": "Windows-1250",
    "ru": "Windows-1251",
}


def is_valid_language_code(code):
    try:
        loc = icu.Locale(code)
        return bool(loc.getLanguage())  # returns False if language is invalid
    except Exception:
        return False


def split_strings_filename(filename):
    """
    Split a strings filename into plugin, language and remaining name parts.

    Example:
        "Skyrim_English.STRINGS"              -> ("Skyrim", "English", "", "STRINGS")
        "Skyrim_English_tagged_text.txt"      -> ("Skyrim", "English", "tagged_text", "txt")
    """
    basename = os.path.basename(filename)
    match = reStringsFilename.match(basename)
    if not match:
        raise ValueError(f"Filename '{basename}' does not match expected pattern '<plugin>_<language>.<ext>'")
    plugin, language, rest, extension = match.groups()
    return plugin, language, rest or "", extension


def get_icu_locale_from_filename(filename):
    _, language, _, _ = split_strings_filename(filename)
    locale_name = ICU_LOCALE_MAP.get(language.lower())
    if locale_name is None:
        raise ValueError(f"Language '{language}' is not in ICU_LOCALE_MAP.")
    if not is_valid_language_code(locale_name):
        raise ValueError(f"Language code '{locale_name}' is not valid.")
    return locale_name


def get_default_fallback_encoding(filename):
    """
    Pick the code page to read non UTF-8 strings with, based on the language in the filename.

    Files whose language cannot be worked out use Windows-1252.
    """
    try:
        locale_name = get_icu_locale_from_filename(filename)
    except ValueError:
        return stringsfile.DEFAULT_FALLBACK_ENCODING
    language = icu.Locale(locale_name).getLanguage()
    return FALLBACK_ENCODING_MAP.get(language, stringsfile.DEFAULT_FALLBACK_ENCODING)


def generate_output_filename(input_file, name_text=None, file_extension=None, output_folder=None):
    """
    Build an output filename from the input name, e.g. 'Skyrim_English.STRINGS'
    with name_text 'tagged text' and extension 'txt' gives 'Skyrim_English_tagged_text.txt'.
    The file goes in output_folder when given, otherwise in the input file's folder.
    """
    base_name, extension = os.path.splitext(os.path.basename(input_file))

    parts = [base_name]
    if name_text:
        parts.append(name_text.strip().lower().replace(' ', '_').strip('_'))
    base_name = "_".join(filter(None, parts))

    if file_extension:
        extension = file_extension if file_extension.startswith('.') else f".{file_extension}"

    file_name = f"{base_name}{extension}"

    if output_folder:
        os.makedirs(output_folder, exist_ok=True)
        return os.path.join(output_folder, file_name)
    return os.path.join(os.path.dirname(input_file), file_name)


def normalize_text(text):
    normalizer = icu.Normalizer2.getNFCInstance()
    return normalizer.normalize(text)


def detect_and_fix_utf8_bom(file_path):
    """
    Check if a file has a UTF-8 BOM and remove it if present.
    Ensures the file is saved in proper UTF-8 without BOM and normalized.
    Only reports when a BOM is fixed.
    """
    with open(file_path, 'rb') as f:
        content_bytes = f.read()

    if content_bytes.startswith(b'\xef\xbb\xbf'):
        text = normalize_text(content_bytes.decode('utf-8-sig'))

        with open(file_path, 'w', encoding='utf-8', newline='\n') as f:
            f.write(text)

        print(f"Fixing BOM in {file_path}")


def escape_tagged_text(text):
    return text.replace('\\', '\\\\').replace('\n', '\\n').replace('\r', '\\r')


def unescape_tagged_text(text):
    return reTaggedEscape.sub(lambda m: {'\\': '\\', 'n': '\n', 'r': '\r'}[m.group(1)], text)


def get_po_metadata(filename):
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M+0000")
    metadata = {
        "PO-Revision-Date": now,
        "MIME-Version": "1.0",
        "Content-Type": "text/plain; charset=UTF-8",
        "Content-Transfer-Encoding": "8bit",
        "X-Generator": "Strings Table Python Script",
    }
    try:
        metadata["Language"] = get_icu_locale_from_filename(filename)
    except ValueError:
        print(f"Warning: no language found in '{os.path.basename(filename)}', leaving Language unset.")
    return metadata
