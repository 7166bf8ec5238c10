import os
import tempfile
import unittest

from click.testing import CliRunner

from normalize import Encoding
from nthash import hash_secret, main, nthash
from secret import SecretText

PASSWORD1 = "64f12cddaa88057e06a81b54e73b949b"


class TestNTHash(unittest.TestCase):
    def test_published_nt_hashes(self):
        self.assertEqual(nthash("Password1"), PASSWORD1)
        self.assertEqual(nthash("password"), "8846f7eaee8fb117ad06bdd830b7586c")
        self.assertEqual(nthash(""), "31d6cfe0d16ae931b73c59d7e0c089c0")

    def test_uppercase(self):
        self.assertEqual(nthash("Password1", uppercase=True), PASSWORD1.upper())

    def test_hash_secret(self):
        self.assertEqual(hash_secret(SecretText("Password1")), PASSWORD1)
        self.assertEqual(hash_secret(SecretText("abc"), Encoding.ASCII), "a448017aaf21d8525fc10ae87aa6729d")


class TestCli(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()

    def invoke(self, *args, **kwargs):
        return self.runner.invoke(main, list(args), **kwargs)

    def test_hash_text(self):
        result = self.invoke('hash', 'Password1')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), PASSWORD1)

    def test_hash_text_uppercase_and_encoding(self):
        result = self.invoke('hash', '-u', '-e', 'ascii', 'abc')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), "A448017AAF21D8525FC10AE87AA6729D")

    def test_environment_configuration(self):
        result = self.invoke('hash', 'abc', env={'MD4_ENCODING': 'utf8', 'MD4_UPPERCASE': '1'})
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), "A448017AAF21D8525FC10AE87AA6729D")

    def test_encoding_codec_spellings(self):
        result = self.invoke('hash', 'Password1', env={'MD4_ENCODING': 'utf-16-le'})
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), PASSWORD1)
        result = self.invoke('hash', '-e', 'Latin-1', 'abc')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), "a448017aaf21d8525fc10ae87aa6729d")

    def test_unknown_encoding_is_rejected(self):
        result = self.invoke('hash', '-e', 'klingon', 'abc')
        self.assertEqual(result.exit_code, 2)
        self.assertIn('klingon', result.output)

    def test_hash_hex(self):
        result = self.invoke('hash', '--hex', '616263')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), "a448017aaf21d8525fc10ae87aa6729d")

    def test_hash_bad_hex(self):
        result = self.invoke('hash', '--hex', 'zz')
        self.assertEqual(result.exit_code, 2)

    def test_hash_stdin(self):
        result = self.invoke('hash', '--file', '-', input=b'message digest')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), "d9130a8164549fe818874806e1c7014b")

    def test_hash_file(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, 'message.bin')
            with open(path, 'wb') as file:
                file.write(b'abc')
            result = self.invoke('hash', '--file', path)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), "a448017aaf21d8525fc10ae87aa6729d")

    def test_hash_secret_prompt(self):
        result = self.invoke('hash', '--secret', input='Password1\n')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip().splitlines()[-1], PASSWORD1)
        self.assertNotIn('Password1', result.output)

    def test_exactly_one_source(self):
        self.assertEqual(self.invoke('hash').exit_code, 2)
        self.assertEqual(self.invoke('hash', 'abc', '--hex', '00').exit_code, 2)

    def test_unencodable_text_is_reported(self):
        result = self.invoke('hash', '-e', 'ascii', 'caf\xe9')
        self.assertEqual(result.exit_code, 1)
        self.assertIn('ASCII', result.output)

    def test_check(self):
        result = self.invoke('check', PASSWORD1.upper(), 'Password1')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), 'OK')
        result = self.invoke('check', PASSWORD1, 'Password2')
        self.assertEqual(result.exit_code, 1)
        self.assertEqual(result.output.strip(), 'FAILED')


if __name__ == "__main__":
    unittest.main(verbosity=1)
