import os
import sys
import logging
import argparse

from activitypack.adapters.manifest_adapter import write_manifest
from activitypack.config import BUILD_DIR, DEFAULT_CONFIG, HANDLER_INTERFACE, MANIFEST_FILE, PLUGIN_NAME, ClassifierConfig
from activitypack.errors import MetadataError
from activitypack.extractors.project_metadata import create_project_manifest, read_project_uuid
from activitypack.transforms.activity_loader import inject_activity_identity


def report_error(err: MetadataError):
    print(f"ERROR in {PLUGIN_NAME}", file=sys.stderr)
    print(str(err), file=sys.stderr)


def build_manifest(root_dir, output=None, suite_uuid=None, entry=None, tsconfig_path=None, scan=False,
                   pretty=False, config: ClassifierConfig = DEFAULT_CONFIG):
    manifest = create_project_manifest(
        root_dir,
        suite_uuid=suite_uuid,
        entry=entry,
        tsconfig_path=tsconfig_path,
        scan=scan,
        config=config,
    )
    if output is None:
        output = os.path.join(root_dir, BUILD_DIR, MANIFEST_FILE)
    write_manifest(manifest, output, pretty=pretty)
    print(f"{len(manifest.activities)} activities, {len(manifest.elements)} elements")
    print(f"Wrote {output}")
    return output


def inject_identity(file_path, suite_uuid=None, in_place=False):
    if suite_uuid is None:
        suite_uuid = read_project_uuid(os.path.dirname(os.path.abspath(file_path)))
        if suite_uuid is None:
            raise ValueError("No suite identifier given; pass --suite")
    with open(file_path, "r", encoding="utf-8") as f:
        source = f.read()
    result = inject_activity_identity(source, suite_uuid, file_name=os.path.basename(file_path))
    if in_place:
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(result)
        print(f"Updated {file_path}")
    else:
        sys.stdout.write(result)
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(description='Activity pack metadata tool')
    subparsers = parser.add_subparsers(dest='function', help='Available functions')

    # create_manifest
    parser_create = subparsers.add_parser('create_manifest', help='Write activitypack.json for a project')
    parser_create.add_argument('root_dir', help='Project root directory')
    parser_create.add_argument('--suite', default=None,
                               help='Suite identifier (default: read from the uuid module in root_dir)')
    parser_create.add_argument('--entry', default=None,
                               help='Entry module (default: src/index.ts)')
    parser_create.add_argument('--tsconfig', default=None,
                               help='tsconfig.json to use (default: root_dir/tsconfig.json)')
    parser_create.add_argument('--output', default=None,
                               help='Output file (default: root_dir/build/activitypack.json)')
    parser_create.add_argument('--scan', action='store_true',
                               help='Collect exports of every source file instead of the entry module')
    parser_create.add_argument('--pretty', action='store_true', help='Indent the JSON output')
    parser_create.add_argument('--handler-interface', default=HANDLER_INTERFACE,
                               help=f'Interface that marks activity handlers (default: {HANDLER_INTERFACE})')
    parser_create.add_argument('--base-class', action='append', default=[],
                               help='Additional activity base class, may be repeated')
    parser_create.add_argument('--verbose', action='store_true', help='Log debug output')

    # inject_identity
    parser_inject = subparsers.add_parser('inject_identity', help='Add action/suite members to activity classes')
    parser_inject.add_argument('file', help='Source file to transform')
    parser_inject.add_argument('--suite', default=None,
                               help="Suite identifier (default: read from the uuid module next to the file)")
    parser_inject.add_argument('--in-place', action='store_true', help='Rewrite the file instead of printing')

    args = parser.parse_args(argv)

    if not args.function:
        parser.print_help()
        return

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.function == 'create_manifest':
            config = ClassifierConfig(
                handler_interface=args.handler_interface,
                extra_base_classes=tuple(args.base_class),
            )
            print(f"Creating manifest for: {args.root_dir}")
            build_manifest(
                root_dir=args.root_dir,
                output=args.output,
                suite_uuid=args.suite,
                entry=args.entry,
                tsconfig_path=args.tsconfig,
                scan=args.scan,
                pretty=args.pretty,
                config=config,
            )
        elif args.function == 'inject_identity':
            inject_identity(args.file, suite_uuid=args.suite, in_place=args.in_place)

    except MetadataError as e:
        report_error(e)
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
