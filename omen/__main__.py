from argparse import ArgumentParser

from omen.hook.runner import main

try:
    import uvloop
except ImportError:
    uvloop = None


def entrypoint():
    if uvloop:
        uvloop.install()
    parser = ArgumentParser(prog="omen", add_help=False)
    parser.add_argument("file", metavar="FILE")
    args = parser.parse_args()
    main(args.file)


if __name__ == "__main__":
    entrypoint()
