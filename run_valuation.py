#!/usr/bin/env python3
"""
run_valuation.py - Gratuity Valuation Runner

Runs a complete gratuity valuation from start to finish:
1. Load assumptions and rate tables (JSON)
2. Load and validate the employee roster
3. Value every employee under the base and sensitivity scenarios
4. Write the Excel report and optional JSON payload

Usage:
    python run_valuation.py \\
        --census employees.xlsx \\
        --assumptions assumptions.json \\
        --rates rate_tables.json \\
        --output gratuity_valuation.xlsx

Author: Actuarial Pipeline Project
Version: 1.0.0
"""

import argparse
import json
import sys
import logging
from pathlib import Path
from typing import Optional, Dict, Any

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_json(path: str) -> Any:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def run_gratuity_valuation(
    census_path: str,
    assumptions_path: str,
    output_path: str,
    rates_path: Optional[str] = None,
    payload_path: Optional[str] = None,
    job_id: str = "",
) -> Dict[str, Any]:
    """
    Run a complete gratuity valuation.

    Args:
        census_path: Path to the employee roster (Excel or CSV)
        assumptions_path: JSON file with demographicAssumptions,
            financialAssumptions, benefitStructure and optionally rateTables
        output_path: Path for the Excel report
        rates_path: JSON file with a list of rate table documents
        payload_path: Optional path for the JSON result payload
        job_id: Identifier attached to progress updates

    Returns:
        Dict with the valuation result, roster summary and report path
    """
    from gratuity_valuation import (
        create_engine,
        generate_valuation_report,
        load_roster,
    )

    print("=" * 70)
    print("GRATUITY VALUATION")
    print("=" * 70)
    print(f"Census:      {census_path}")
    print(f"Assumptions: {assumptions_path}")
    print(f"Rates:       {rates_path or '(from assumptions file)'}")
    print(f"Output:      {output_path}")
    print()

    # =========================================================================
    # STEP 1: Load Assumptions
    # =========================================================================
    print("Step 1: Loading assumptions...")

    config = load_json(assumptions_path)
    if rates_path:
        config['rateTables'] = load_json(rates_path)

    engine = create_engine(config)
    print(f"  Rate tables available: {len(engine.rate_tables)}")
    print()

    # =========================================================================
    # STEP 2: Load Roster
    # =========================================================================
    print("Step 2: Loading employee roster...")

    roster = load_roster(census_path)
    summary = roster.get_summary()
    print(f"  Employees valued: {summary['valued_records']}")
    print(f"  Excluded records: {summary['excluded_records']}")
    print(f"  Total pay: {summary['total_pay']:,.0f}")
    print()

    # =========================================================================
    # STEP 3: Run Valuation
    # =========================================================================
    print("Step 3: Running valuation engine...")

    def show_progress(update):
        print(f"  [{update.percentage:3d}%] {update.stage}: {update.message}")

    result = engine.run_valuation(roster.records, job_id=job_id, progress=show_progress)
    report = result.report

    print()
    for cause, amount in report.base.by_cause().items():
        print(f"  AL {cause.value:<12} {amount:>18,.0f}")
    print(f"  AL {'total':<12} {report.base.total:>18,.0f}")
    print(f"  Duration:       {report.duration:>15.2f}")
    print()

    # =========================================================================
    # STEP 4: Write Outputs
    # =========================================================================
    print("Step 4: Writing report...")

    output = generate_valuation_report(
        report,
        result.cash_flows,
        output_path,
        decrement_table=result.decrement_table,
        employee_count=len(result.employees),
    )
    print(f"  Report saved to: {output}")

    if payload_path:
        with open(payload_path, 'w', encoding='utf-8') as f:
            json.dump(result.to_payload(), f, indent=2)
        print(f"  Payload saved to: {payload_path}")

    return {
        'output_path': output,
        'result': result,
        'roster': summary,
    }


def main():
    parser = argparse.ArgumentParser(
        description='Run Gratuity Valuation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_valuation.py \\
      --census employees.xlsx \\
      --assumptions assumptions.json \\
      --rates rate_tables.json \\
      --output gratuity_valuation.xlsx \\
      --payload result.json
"""
    )

    parser.add_argument('--census', type=str, required=True, help='Employee roster (Excel or CSV)')
    parser.add_argument('--assumptions', type=str, required=True, help='Assumptions JSON file')
    parser.add_argument('--rates', type=str, help='Rate tables JSON file')
    parser.add_argument('--output', type=str, default='gratuity_valuation.xlsx', help='Output Excel file')
    parser.add_argument('--payload', type=str, help='Optional JSON result payload')
    parser.add_argument('--job-id', type=str, default='', help='Job identifier for progress updates')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    for path in (args.census, args.assumptions, args.rates):
        if path and not Path(path).exists():
            print(f"ERROR: File not found: {path}")
            sys.exit(1)

    try:
        run_gratuity_valuation(
            census_path=args.census,
            assumptions_path=args.assumptions,
            output_path=args.output,
            rates_path=args.rates,
            payload_path=args.payload,
            job_id=args.job_id,
        )
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
