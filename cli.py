"""
CLI for certificate numbering and document rendering
"""
import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from config import Settings, get_settings
from labdocs.exceptions import LabDocsError
from labdocs.models import CertificateNumber, CertificateRecord, ServiceRecord
from labdocs.numbering import SerialAllocator, create_allocator, fiscal_year_label
from labdocs.renderer import DocumentRenderer, create_renderer


class LabDocsCLI:
    """CLI for the certificate counter and PDF rendering"""

    def __init__(self, settings: Settings = None):
        self.settings = settings or get_settings()
        self.setup_logging()
        self.allocator: SerialAllocator = create_allocator(self.settings)
        self.renderer: DocumentRenderer = create_renderer(self.settings)

    def setup_logging(self):
        """Configures logging"""
        self.settings.create_directories()
        logging.basicConfig(
            level=getattr(logging, self.settings.log_level),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(self.settings.log_file),
                logging.StreamHandler()
            ]
        )
        self.logger = logging.getLogger(__name__)

    def fiscal_year(self, args):
        """Prints the fiscal year label of a date"""
        try:
            day = date.fromisoformat(args.date) if args.date else date.today()
        except ValueError:
            print(f"✗ Invalid date: {args.date} (expected YYYY-MM-DD)")
            sys.exit(1)

        print(f"Fiscal year of {day.isoformat()}: {fiscal_year_label(day)}")

    def parse_number(self, args):
        """Parses a certificate number"""
        try:
            number = CertificateNumber.parse(args.number, prefix=self.settings.certificate_prefix)
        except ValueError as e:
            print(f"✗ {e}")
            sys.exit(1)

        print(f"✓ Certificate number {number}")
        print(f"  Fiscal year: {number.fiscal_year}")
        print(f"  Sequence: {number.sequence}")

    def counter_show(self, args):
        """Prints the stored counter"""
        try:
            counter = self.allocator.peek()
        except LabDocsError as e:
            print(f"✗ Counter cannot be read: {e}")
            sys.exit(1)

        if counter is None:
            print(f"Counter file {self.settings.counter_file} does not exist, next number starts at 001")
            return

        print(f"Counter file: {self.settings.counter_file}")
        print(f"  Fiscal year: {counter.fiscal_year}")
        print(f"  Last sequence: {counter.sequence}")
        print(f"  Current fiscal year: {self.allocator.current_fiscal_year()}")

    def counter_set(self, args):
        """Overwrites the stored counter"""
        try:
            counter = self.allocator.reset(args.year, args.sequence)
        except PydanticValidationError as e:
            print(f"✗ Invalid counter value: {e.errors()[0]['msg']}")
            sys.exit(1)
        except LabDocsError as e:
            print(f"✗ Counter cannot be written: {e}")
            sys.exit(1)

        print(f"✓ Counter set to {counter.fiscal_year}/{counter.sequence}")

    def next_number(self, args):
        """Allocates and persists the next certificate number"""
        try:
            number = self.allocator.allocate()
        except LabDocsError as e:
            print(f"✗ Certificate number not allocated: {e}")
            sys.exit(1)

        print(f"✓ {number}")

    def render(self, args):
        """Renders a JSON record into the document store"""
        model = CertificateRecord if args.kind == 'certificate' else ServiceRecord

        try:
            with open(args.file, 'r', encoding='utf-8') as f:
                record = model.model_validate(json.load(f))
        except (OSError, ValueError) as e:
            print(f"✗ Cannot read record {args.file}: {e}")
            sys.exit(1)

        try:
            result = self.renderer.render(record)
        except LabDocsError as e:
            print(f"✗ Document not generated: {e}")
            self.logger.error(f"Error rendering {args.file}: {e}")
            sys.exit(1)

        print(f"✓ Document generated: {result.path}")
        print(f"  Pages: {result.pages}")
        for step in result.report.failures:
            print(f"  ! {step.name} left blank: {step.error}")

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Certificate numbering and calibration document rendering",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  %(prog)s fiscal-year --date 2024-03-15
  %(prog)s parse-number RPS/CERT/24-25/007
  %(prog)s counter show
  %(prog)s counter set --year 24-25 --sequence 41
  %(prog)s next-number
  %(prog)s render certificate record.json
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        fy_parser = subparsers.add_parser('fiscal-year', help='Fiscal year label of a date')
        fy_parser.add_argument('--date', help='Date YYYY-MM-DD, today by default')

        parse_parser = subparsers.add_parser('parse-number', help='Parse a certificate number')
        parse_parser.add_argument('number', help='Certificate number, e.g. RPS/CERT/24-25/007')

        counter_parser = subparsers.add_parser('counter', help='Inspect or repair the counter')
        counter_subparsers = counter_parser.add_subparsers(dest='counter_command')
        counter_subparsers.add_parser('show', help='Show the stored counter')
        set_parser = counter_subparsers.add_parser('set', help='Overwrite the stored counter')
        set_parser.add_argument('--year', required=True, help='Fiscal year YY-YY')
        set_parser.add_argument('--sequence', type=int, required=True, help='Last issued sequence')

        subparsers.add_parser('next-number', help='Allocate the next certificate number')

        render_parser = subparsers.add_parser('render', help='Render a record to PDF')
        render_parser.add_argument('kind', choices=['certificate', 'service'], help='Record type')
        render_parser.add_argument('file', type=Path, help='JSON file with the record')

        return parser

    def main(self, argv=None):
        """CLI entry point"""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return

        if args.command == 'fiscal-year':
            self.fiscal_year(args)
        elif args.command == 'parse-number':
            self.parse_number(args)
        elif args.command == 'counter':
            if args.counter_command == 'show':
                self.counter_show(args)
            elif args.counter_command == 'set':
                self.counter_set(args)
            else:
                parser.parse_args(['counter', '--help'])
        elif args.command == 'next-number':
            self.next_number(args)
        elif args.command == 'render':
            self.render(args)


if __name__ == '__main__':
    cli = LabDocsCLI()
    cli.main()
