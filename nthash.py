"""NT hash helpers and the md4 command line."""
import logging
import sys

import click

from md4 import compute_md4_hex
from normalize import Encoding, NormalizationError, normalize
from secret import SecretText


def nthash(value: str, uppercase: bool = False) -> str:
    return compute_md4_hex(value.encode('utf-16-le'), uppercase=uppercase)


def hash_secret(secret: SecretText, encoding: Encoding = Encoding.UTF16LE, uppercase: bool = False) -> str:
    with normalize(secret, encoding) as plaintext:
        return compute_md4_hex(plaintext, uppercase=uppercase)


def parse_encoding(ctx: click.Context, param: click.Parameter, value: str) -> Encoding:
    try:
        return Encoding.from_name(value)
    except NormalizationError as e:
        raise click.BadParameter(str(e), ctx=ctx, param=param) from e


def digest_source(text: str | None, stream, hexdata: str | None, secret: bool, encoding: Encoding, uppercase: bool) -> str:
    sources = [text is not None, stream is not None, hexdata is not None, secret]
    if sum(sources) != 1:
        raise click.UsageError('exactly one of TEXT, --file, --hex or --secret is required')
    try:
        if secret:
            value = click.prompt('Passphrase', hide_input=True, default='', show_default=False)
            return hash_secret(SecretText(value), encoding, uppercase)
        if stream is not None:
            data = stream.read()
        elif hexdata is not None:
            try:
                data = bytes.fromhex(hexdata)
            except ValueError as e:
                raise click.BadParameter(str(e), param_hint='--hex') from e
        else:
            data = normalize(text, encoding)
        return compute_md4_hex(data, uppercase=uppercase)
    except NormalizationError as e:
        raise click.ClickException(str(e)) from e


def source_options(func):
    func = click.argument('text', required=False)(func)
    func = click.option('-f', '--file', 'stream', type=click.File('rb'), help='Hash the raw bytes of a file, - for stdin')(func)
    func = click.option('-x', '--hex', 'hexdata', help='Hash the raw bytes given as hex')(func)
    func = click.option('-s', '--secret', is_flag=True, help='Read the passphrase from a hidden prompt')(func)
    func = click.option('-e', '--encoding', callback=parse_encoding, default='utf16le', show_default=True, envvar='MD4_ENCODING', help='Text encoding applied to TEXT and --secret, e.g. utf16le, ascii, utf-8, latin-1')(func)
    return func


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Print debug logs to stderr')
def main(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format='%(levelname)s:%(name)s:%(message)s')


@main.command('hash', help='Print the MD4 digest of text, bytes or a hidden passphrase')
@source_options
@click.option('-u', '--uppercase', is_flag=True, envvar='MD4_UPPERCASE', help='Print the digest in uppercase')
def hash_command(text: str | None, stream, hexdata: str | None, secret: bool, encoding: Encoding, uppercase: bool) -> None:
    click.echo(digest_source(text, stream, hexdata, secret, encoding, uppercase))


@main.command('check', help='Compare the MD4 digest of the input against DIGEST')
@click.argument('digest')
@source_options
def check_command(digest: str, text: str | None, stream, hexdata: str | None, secret: bool, encoding: Encoding) -> None:
    if digest_source(text, stream, hexdata, secret, encoding, uppercase=False) == digest.strip().lower():
        click.echo('OK')
    else:
        click.echo('FAILED')
        sys.exit(1)


if __name__ == '__main__':
    main()
