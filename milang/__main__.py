import pathlib
import sys


from milang.parser import MiParser


def main():
    filename = pathlib.Path(sys.argv[1])

    with open(filename) as fp:
        code = fp.read()

    result = MiParser(code, filepath=filename).parse()
    for diagnostic in result.diagnostics:
        print(diagnostic.render(filename), file=sys.stderr)

    if result.root != None and not result.encountered_error:
        print(result.root.render())

    if result.encountered_error:
        sys.exit(1)


if __name__ == "__main__":
    main()
