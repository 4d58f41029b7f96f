import sys

import atheris
from helpers import EnhancedDataProvider

with atheris.instrument_imports():
    from formdata.exceptions import FormDataError
    from formdata.multipart import parse_multipart


def parse_with_header(fdp: EnhancedDataProvider) -> None:
    boundary = "boundary"
    body = (
        f"--{boundary}\r\n"
        f"{fdp.ConsumeRandomString()}\r\n"
        f"--{boundary}--\r\n"
    )
    parse_multipart(body.encode("latin1", errors="ignore"), f"multipart/form-data; boundary={boundary}")


def parse_sniffed(fdp: EnhancedDataProvider) -> None:
    parse_multipart(b"---" + fdp.ConsumeRandomBytes())


def parse_random(fdp: EnhancedDataProvider) -> None:
    parse_multipart(fdp.ConsumeRandomBytes(), fdp.ConsumeRandomString())


def TestOneInput(data: bytes) -> None:
    fdp = EnhancedDataProvider(data)
    targets = [parse_with_header, parse_sniffed, parse_random]
    target = fdp.PickValueInList(targets)

    try:
        target(fdp)
    except FormDataError:
        return


def main():
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
