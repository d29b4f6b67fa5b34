# -*- coding: utf-8 -*-
import argparse
import sys
import inspect
import re

import chardet
import polib

import stringsfile
import stringsutils
from stringsfile import StringsError, StringTable

"""
Command line tools for STRINGS, ILSTRINGS and DLSTRINGS files.

When no fallback encoding is given, it is picked from the language in the
filename (Skyrim_Russian.STRINGS reads non UTF-8 strings as Windows-1251).
"""
# List to hold information about callable functions
callable_functions = []


def mainFunction(func):
    """Decorator to mark functions as callable and add them to the list."""
    callable_functions.append(func)
    return func


def print_help():
    print("Available callable functions:")
    for func in callable_functions:
        print("- {}: {}".format(func.__name__, func.__doc__))


def print_docstrings():
    print("Docstrings for callable functions:")
    for func in callable_functions:
        print("\nFunction: {}".format(func.__name__))
        docstring = inspect.getdoc(func)
        if docstring:
            encoded_docstring = docstring.encode('utf-8', errors='ignore').decode(sys.stdout.encoding or 'utf-8')
            print(encoded_docstring)
        else:
            print("No docstring available.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="A script to read, edit and convert strings table files.")
    parser.add_argument("--help-functions", action="store_true", help="Print available functions and their docstrings.")
    parser.add_argument("--list-functions", action="store_true", help="List available functions without docstrings.")
    parser.add_argument("--usage", action="store_true", help="Display usage information.")
    parser.add_argument("function", nargs="?", help="The name of the function to execute.")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the function.")

    args = parser.parse_args(argv)

    if args.usage:
        print("Usage: stringstool.py function [args [args ...]]")
        print("       stringstool.py --help-functions, or help")
        print("       stringstool.py --list-functions, or list")
    elif args.help_functions or args.function == "help":
        print_docstrings()
    elif args.list_functions or args.function == "list":
        print("Available functions:")
        for func in callable_functions:
            print(func.__name__)
    elif args.function:
        function_name = args.function
        for func in callable_functions:
            if func.__name__ == function_name:
                try:
                    func(*args.args)
                except StringsError as e:
                    print(f"{function_name}(...) failed! Return code: {e.code}")
                    print(f"Error message: {e}")
                    return e.code
                break
        else:
            print("Unknown function: {}".format(function_name))
            return stringsfile.ERROR_INVALID_ARGS
    else:
        print("No command provided.")
    return stringsfile.OK


# Matches lines in the format {{stringId:}}string_text from tagged strings text files
reStringsTagged = re.compile(r'^\{\{(\d+):\}\}(.*)$')


def open_with_fallback(strings_file, fallback_encoding=None):
    if not fallback_encoding:
        fallback_encoding = stringsutils.get_default_fallback_encoding(strings_file)
    return StringTable.open(strings_file, fallback_encoding)


def parse_flag(value):
    return str(value).strip().lower() in ("1", "true", "yes", "y")


@mainFunction
def list_strings(strings_file, fallback_encoding=None):
    """
    Print every string ID and its text.

    Args:
        strings_file (str): A .STRINGS, .ILSTRINGS or .DLSTRINGS file.
        fallback_encoding (str): Code page for strings that are not UTF-8.
    """
    table = open_with_fallback(strings_file, fallback_encoding)
    strings = table.get_all()
    print(f"Number of strings: {len(strings)}")
    print("ID\tString")
    for stringId, text in strings:
        print(f"{stringId}\t{stringsutils.escape_tagged_text(text)}")


@mainFunction
def list_unreferenced_strings(strings_file, fallback_encoding=None):
    """
    Print the strings stored in the data block that no string ID points to.
    These are lost when the file is saved again.
    """
    table = open_with_fallback(strings_file, fallback_encoding)
    unreferenced = table.get_unreferenced()
    print(f"Number of unreferenced strings: {len(unreferenced)}")
    for text in unreferenced:
        print(stringsutils.escape_tagged_text(text))


@mainFunction
def get_string(strings_file, string_id, fallback_encoding=None):
    """Print the text of one string ID."""
    try:
        string_id = int(string_id)
    except ValueError:
        raise stringsfile.InvalidArgumentError(f"'{string_id}' is not a valid string ID.") from None
    table = open_with_fallback(strings_file, fallback_encoding)
    print(table.get_one(string_id))


@mainFunction
def convert_strings_file(input_file, output_file, encoding=stringsfile.DEFAULT_TARGET_ENCODING, fallback_encoding=None):
    """
    Read a strings file and write it back out, possibly as another type or encoding.

    Identical strings are stored once and unreferenced strings are dropped.
    The output layout follows the output extension, so Skyrim_English.STRINGS
    can be written as Skyrim_English.DLSTRINGS.

    Args:
        input_file (str): The file to read.
        output_file (str): The file to write.
        encoding (str): UTF-8, Windows-1250, Windows-1251 or Windows-1252.
        fallback_encoding (str): Code page for input strings that are not UTF-8.
    """
    table = open_with_fallback(input_file, fallback_encoding)
    dropped = len(table.get_unreferenced())
    table.save(output_file, encoding)
    if dropped:
        print(f"Dropped {dropped} unreferenced strings.")
    print(f"Converted file written to: {output_file}")


@mainFunction
def create_tagged_strings_text(strings_file, fallback_encoding=None, output_folder=None):
    """
    Writes every string of a strings file as {{stringId:}}text, one per line.
    Backslashes, newlines and carriage returns are escaped as \\\\, \\n and \\r.

    Output:
        <name>_tagged_text.txt
    """
    table = open_with_fallback(strings_file, fallback_encoding)
    output_filename = stringsutils.generate_output_filename(strings_file, "tagged text", "txt", output_folder)

    with open(output_filename, 'w', encoding="utf-8", newline='\n') as out_tagged:
        for stringId, text in table.get_all():
            out_tagged.write(f"{{{{{stringId}:}}}}{stringsutils.escape_tagged_text(text)}\n")

    print(f"Tagged strings text written to: {output_filename}")
    return output_filename


def read_tagged_text_to_list(tagged_text_file):
    """
    Parses a tagged .txt file ({{stringId:}}text) into (stringId, text) pairs.
    Text is unescaped and NFC normalized. Lines that do not match are skipped.
    """
    stringsutils.detect_and_fix_utf8_bom(tagged_text_file)
    pairs = []
    with open(tagged_text_file, 'r', encoding='utf-8') as f:
        for line in f:
            match = reStringsTagged.match(line.rstrip('\n'))
            if not match:
                continue
            text = stringsutils.unescape_tagged_text(match.group(2))
            pairs.append((int(match.group(1)), stringsutils.normalize_text(text)))
    return pairs


@mainFunction
def rebuild_strings_from_tagged_text(tagged_text_file, output_file, encoding=stringsfile.DEFAULT_TARGET_ENCODING):
    """
    Builds a new strings file from a tagged text file made by create_tagged_strings_text.

    Args:
        tagged_text_file (str): {{stringId:}}text lines.
        output_file (str): The file to write; its extension picks the layout.
        encoding (str): Encoding for the written strings.
    """
    pairs = read_tagged_text_to_list(tagged_text_file)
    table = StringTable(stringsfile.get_file_variant_from_path(output_file))
    table.set_all(pairs)
    table.save(output_file, encoding)
    print(f"String Count: {len(pairs)}")
    print(f"Rebuilt file written to: {output_file}")


@mainFunction
def create_po_from_strings(translated_strings_file, english_strings_file, isBaseEnglish=False, fallback_encoding=None):
    """
    Creates a .po file pairing English strings with their translations by string ID.

    msgctxt is the string ID, msgid the English text and msgstr the translation.
    Empty English strings are skipped.

    Args:
        translated_strings_file (str): e.g. Skyrim_French.STRINGS
        english_strings_file (str): e.g. Skyrim_English.STRINGS
        isBaseEnglish (bool): If True, produces a base .po with empty msgstr fields.
        fallback_encoding (str): Code page for the translated file's non UTF-8 strings.
    """
    isBaseEnglish = parse_flag(isBaseEnglish)
    english_table = open_with_fallback(english_strings_file)
    translated_table = open_with_fallback(translated_strings_file, fallback_encoding)
    translated_map = dict(translated_table.get_all())

    po = polib.POFile()
    po.metadata = stringsutils.get_po_metadata(translated_strings_file)
    output_po = stringsutils.generate_output_filename(translated_strings_file, file_extension="po")

    for stringId, english_text in english_table.get_all():
        if not english_text:
            continue
        msgstr = "" if isBaseEnglish else translated_map.get(stringId, "")
        po.append(polib.POEntry(msgctxt=str(stringId), msgid=english_text, msgstr=msgstr))

    po.save(output_po)
    print(f"PO output written to: {output_po}")
    return output_po


@mainFunction
def rebuild_strings_from_po(po_file, base_strings_file, output_file, encoding=stringsfile.DEFAULT_TARGET_ENCODING,
                            fallback_encoding=None):
    """
    Applies the translations in a .po file to a strings file and saves the result.

    Entries with an empty msgstr keep the text of base_strings_file. IDs missing
    from the base file are added.
    """
    table = open_with_fallback(base_strings_file, fallback_encoding)
    po = polib.pofile(po_file)
    replaced = 0
    added = 0
    for entry in po:
        if not entry.msgctxt or not entry.msgctxt.isdigit() or not entry.msgstr:
            continue
        stringId = int(entry.msgctxt)
        text = stringsutils.normalize_text(entry.msgstr)
        if stringId in table:
            table.replace(stringId, text)
            replaced += 1
        else:
            table.add(stringId, text)
            added += 1

    table.save(output_file, encoding)
    print(f"Replaced {replaced} strings, added {added} strings.")
    print(f"Rebuilt file written to: {output_file}")


@mainFunction
def guess_fallback_encoding(strings_file):
    """
    Guess which code page a file's non UTF-8 strings were written in, using chardet.
    Prints 'UTF-8' when every string is valid UTF-8.
    """
    with open(strings_file, 'rb') as stringsIn:
        content = stringsIn.read()
    raw_table = stringsfile.read_raw_table(content, stringsfile.get_file_variant_from_path(strings_file))

    legacy = []
    for _, stringOffset in raw_table.directory:
        textLine = stringsfile.readNullString(stringsfile.string_start(stringOffset, raw_table.variant), raw_table.data)
        try:
            textLine.decode("utf-8")
        except UnicodeDecodeError:
            legacy.append(textLine)

    if not legacy:
        print("All strings are valid UTF-8.")
        return stringsfile.DEFAULT_TARGET_ENCODING

    guess = chardet.detect(b"\n".join(legacy))
    default = stringsutils.get_default_fallback_encoding(strings_file)
    try:
        encoding = stringsfile.normalize_encoding(guess["encoding"] or "", allow_utf8=False)
    except StringsError:
        print(f"Warning: chardet suggested {guess['encoding']}, which is not supported. Using {default}.")
        encoding = default
    print(f"{len(legacy)} strings are not UTF-8. Suggested fallback encoding: {encoding} "
          f"(confidence {guess['confidence'] or 0:.2f})")
    return encoding


@mainFunction
def exercise_strings_file(strings_file, fallback_encoding=None):
    """
    Runs every table operation against a strings file and reports each result,
    then saves the edited table as <name>_exercised.<ext>.
    """
    test_message = "This is a test message."
    test_id = stringsfile.MAX_UINT32

    def report(name, operation, *args):
        print(f"TESTING {name}(...)")
        try:
            result = operation(*args)
        except StringsError as e:
            print(f"\t{name}(...) failed! Return code: {e.code}")
            print(f"\tError message: {e}")
            return None
        print(f"\t{name}(...) successful!")
        return result

    table = report("open", open_with_fallback, strings_file, fallback_encoding)
    if table is None:
        return

    strings = report("get_all", table.get_all)
    print(f"\tNumber of strings: {len(strings)}")
    unreferenced = report("get_unreferenced", table.get_unreferenced)
    print(f"\tNumber of unreferenced strings: {len(unreferenced)}")

    if strings:
        stringId = strings[len(strings) // 2][0]
        print(f"\tString fetched: {report('get_one', table.get_one, stringId)}")
        report("replace", table.replace, stringId, test_message)
        print(f"\tString fetched: {report('get_one', table.get_one, stringId)}")

    report("add", table.add, test_id, test_message)
    report("remove", table.remove, test_id)
    report("get_one", table.get_one, test_id)
    report("set_all", table.set_all, table.get_all())

    output_filename = stringsutils.generate_output_filename(strings_file, "exercised")
    report("save", table.save, output_filename, stringsfile.DEFAULT_TARGET_ENCODING)
    table.close()


# To run the main function
if __name__ == "__main__":
    sys.exit(main())
