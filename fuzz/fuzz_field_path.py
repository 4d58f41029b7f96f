import sys

import atheris
from helpers import EnhancedDataProvider

with atheris.instrument_imports():
    from formdata.fieldpath import merge_field


def TestOneInput(data: bytes) -> None:
    fdp = EnhancedDataProvider(data)
    tree = {}
    while fdp.remaining_bytes():
        merge_field(tree, fdp.ConsumeUnicodeNoSurrogates(fdp.ConsumeIntInRange(0, 32)), "value")


def main():
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
