import argparse
import logging
import os
import sys

from ffe_crypto import (
    DEFAULT_KEY_SIZE,
    CryptoError,
    KeyManager,
    KeyState,
)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

MENU = """What do you want to do?
1) Load RSA Keys.
2) Encrypt a file.
3) Decrypt a file.
4) Generate RSA Keys.
9) Exit"""


def _output_folder(file_path, output=None):
    return output or os.path.dirname(os.path.abspath(file_path))


def _load_key(manager, keyfile):
    status = manager.load_key_pair(keyfile)
    print(status)
    return status


def _generate(manager, folder, key_size, prefix=""):
    public_path, pair_path = manager.generate_key_pair(folder, key_size, prefix=prefix)
    print(f"RSA keys saved to '{pair_path}' and '{public_path}'")


def _encrypt(manager, file_path, folder, oaep=False):
    out = manager.encrypt_file(file_path, folder, oaep_padding=oaep)
    print(f"File '{file_path}' successfully encrypted to '{out}'")


def _decrypt(manager, file_path, folder, oaep=False):
    result = manager.decrypt_file(file_path, folder, oaep_padding=oaep)
    if not result.ok:
        print(f"Error: {result.error}")
        return False
    print(f"File '{file_path}' successfully decrypted to '{result.output_path}'")
    return True


def run_menu(manager, prompt=input):
    """Numbered console menu over a single KeyManager. Paths are typed, not browsed."""
    print("Welcome user!")
    while True:
        print(manager.status())
        print(MENU)
        reply = prompt("> ").strip()
        try:
            if reply == "1":
                _load_key(manager, prompt("Please write the path of the RSA Key File: ").strip())
            elif reply == "2":
                if manager.state is KeyState.NOT_LOADED:
                    print("No valid RSA key has been loaded.")
                else:
                    file_path = prompt("Please write the path of the file you wish to encrypt: ").strip()
                    folder = prompt("Please write the path of the target folder: ").strip()
                    _encrypt(manager, file_path, folder)
            elif reply == "3":
                if manager.state is not KeyState.PUBLIC_AND_PRIVATE:
                    print("No valid RSA key has been loaded.")
                else:
                    file_path = prompt("Please write the path of the file you wish to decrypt: ").strip()
                    folder = prompt("Please write the path of the target folder: ").strip()
                    _decrypt(manager, file_path, folder)
            elif reply == "4":
                folder = prompt("Please write the path of the target folder: ").strip()
                size_reply = prompt(
                    f"Please write the preferred size of the key (a non number for the default {DEFAULT_KEY_SIZE}): "
                ).strip()
                key_size = int(size_reply) if size_reply.isdigit() else DEFAULT_KEY_SIZE
                _generate(manager, folder, key_size)
            elif reply == "9":
                return
            else:
                print("Wrong Input.")
        except CryptoError as e:
            print(f"Error: {e}")
        print()


def build_parser():
    parser = argparse.ArgumentParser(description="RSA File Encryption/Decryption Tool")

    action_group = parser.add_mutually_exclusive_group()
    action_group.add_argument('-e', '--encrypt', action='store_true', help='Encrypt a file with the RSA key given by -i')
    action_group.add_argument('-d', '--decrypt', action='store_true', help='Decrypt a file with the RSA key pair given by -i')
    action_group.add_argument('--genrsakey', action='store_true', help='Generate an RSA key pair into the folder given by -o')
    action_group.add_argument('--status', action='store_true', help='Show the status and capacity of the RSA key given by -i')
    action_group.add_argument('--interactive', action='store_true', help='Start the interactive menu')

    parser.add_argument('file', nargs='?', help='File to encrypt or decrypt')

    parser.add_argument('-i', '--keyfile', help='RSA key file (public key for encryption, key pair for decryption)')
    parser.add_argument('-o', '--output', help="Output folder, Default: the input file's folder")
    parser.add_argument('-s', '--key-size', type=int, default=DEFAULT_KEY_SIZE, help=f'RSA key size in bits, Default:{DEFAULT_KEY_SIZE}')
    parser.add_argument('--prefix', default='', help='Filename prefix for generated key files')
    parser.add_argument('--oaep', action='store_true', help='Use OAEP padding instead of PKCS#1 v1.5')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format=LOG_FORMAT)

    # Parameter validation
    if args.genrsakey and not args.output:
        parser.error("--genrsakey requires -o to specify the output folder.")
    if (args.encrypt or args.decrypt) and not args.file:
        parser.error("-e or -d requires a file to encrypt or decrypt.")
    if (args.encrypt or args.decrypt or args.status) and not args.keyfile:
        parser.error("-e, -d and --status require -i (key file).")

    manager = KeyManager()
    try:
        if args.interactive:
            run_menu(manager)
        elif args.genrsakey:
            _generate(manager, args.output, args.key_size, args.prefix)
        elif args.status:
            _load_key(manager, args.keyfile)
        elif args.encrypt:
            _load_key(manager, args.keyfile)
            _encrypt(manager, args.file, _output_folder(args.file, args.output), args.oaep)
        elif args.decrypt:
            _load_key(manager, args.keyfile)
            if not _decrypt(manager, args.file, _output_folder(args.file, args.output), args.oaep):
                return 1
        else:
            parser.print_help()
    except CryptoError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
