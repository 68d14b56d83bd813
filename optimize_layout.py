# quartad-layout-optimizer/optimize_layout.py
"""
Keyboard layout optimization over corpus quartads.

Searches 30-key, two-layer layouts for the lowest typing-effort penalty,
estimated from windows of up to four consecutive characters of a corpus.
Penalty weights, the annealing schedule and search defaults are read from
config.yaml.

Commands:
    run      Simulated annealing from a layout (default: SHAKA).
    run-ref  Score the built-in reference layouts with a penalty breakdown.
    refine   Exhaustive search of the 1..N-swap neighborhoods of a layout.

Usage:
    python optimize_layout.py run corpus.txt [layout.txt] [--top 5] [--swaps 3] [--seed 1]
    python optimize_layout.py run-ref corpus.txt
    python optimize_layout.py refine corpus.txt layout.txt [--swaps 2]
"""
import argparse
import csv
import os
import sys
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import yaml

from keyboard_layout import DEFAULT_LAYOUT, REFERENCE_LAYOUTS, Layout, visualize_layout
from penalty import PenaltyModel, calculate_penalty, score_layouts
from quartads import QuartadList, prepare_quartad_list, read_corpus
from search_layout import AnnealingSchedule, refine, simulate

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config.yaml')

#-----------------------------------------------------------------------------
# Loading, validating, and saving functions
#-----------------------------------------------------------------------------
def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """Load configuration from yaml file and validate it."""
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    validate_config(config)
    return config

def validate_config(config) -> None:
    """
    Validate configuration sections, naming the offending value on failure.
    """
    if not isinstance(config, dict):
        raise ValueError(f"Configuration must be a mapping, got {type(config).__name__}")

    for section in ['penalties', 'annealing', 'search']:
        if section not in config or not isinstance(config[section], dict):
            raise ValueError(f"Missing configuration section: {section}")

    penalties = config['penalties']
    for key in ['weights', 'base_penalties']:
        if key not in penalties:
            raise ValueError(f"Missing penalties.{key}")
    if not isinstance(penalties['weights'], dict):
        raise ValueError(f"penalties.weights must be a mapping: {penalties['weights']}")
    # Builds the model once to check weight names, counts and types
    PenaltyModel.from_config(config)

    annealing = config['annealing']
    for key in ['t0', 'k', 'p0', 'iterations']:
        if key not in annealing:
            raise ValueError(f"Missing annealing.{key}")
    for key, value in annealing.items():
        if key not in ['t0', 'k', 'p0', 'iterations', 'min_temperature']:
            raise ValueError(f"Unknown annealing setting: {key}")
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise ValueError(f"annealing.{key} must be a number: {value}")
    if annealing['t0'] <= 0:
        raise ValueError(f"annealing.t0 must be positive: {annealing['t0']}")
    if not isinstance(annealing['iterations'], int) or annealing['iterations'] < 1:
        raise ValueError(f"annealing.iterations must be a positive integer: {annealing['iterations']}")
    if annealing.get('min_temperature', 0.0) < 0:
        raise ValueError(f"annealing.min_temperature must not be negative: {annealing['min_temperature']}")

    search = config['search']
    for key in ['top', 'swaps']:
        value = search.get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ValueError(f"search.{key} must be a positive integer: {value}")

def numopt(value: Optional[str], default, name: str = 'option', minimum: int = 1):
    """Parse an integer option of at least `minimum`, falling back to the default on bad input."""
    if value is None:
        return default
    try:
        number = int(value)
        if number < minimum:
            raise ValueError(value)
        return number
    except ValueError:
        print(f"Error: invalid {name} value {value}. Using default value {default}.")
        return default

def load_layout(layout_path: Optional[str]) -> Layout:
    """Read a layout file, or return the default layout when no path is given."""
    if layout_path is None:
        return DEFAULT_LAYOUT.copy()
    with open(layout_path, 'r', encoding='utf-8') as f:
        return Layout.from_string(f.read())

def save_results_to_csv(results: List[Tuple[Layout, float]],
                        config: dict,
                        command: str,
                        corpus_path: str) -> str:
    """
    Save ranked layouts to a timestamped CSV file in the results folder.
    """
    output_dir = config.get('paths', {}).get('output', {}).get(
        'layout_results_folder', 'output/layouts')
    os.makedirs(output_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_path = os.path.join(output_dir, f"layout_results_{command}_{timestamp}.csv")

    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)  # Quote all fields

        # Write header with configuration info
        writer.writerow(['Command', command])
        writer.writerow(['Corpus', corpus_path])
        writer.writerow(['Annealing', ', '.join(f"{k}={v}" for k, v in config['annealing'].items())])
        writer.writerow([])  # Empty row for separation

        writer.writerow(['Rank', 'Penalty', 'Lower layer', 'Upper layer'])
        for rank, (layout, penalty) in enumerate(results, 1):
            writer.writerow([
                rank,
                f"{penalty:.6f}",
                ''.join(c if c != '\0' else ' ' for c in layout.lower.keys),
                ''.join(c if c != '\0' else ' ' for c in layout.upper.keys)
            ])

    print(f"\nResults saved to: {output_path}")
    return output_path

#-----------------------------------------------------------------------------
# Visualizing functions
#-----------------------------------------------------------------------------
def format_breakdown(breakdown: Dict[str, Dict[str, float]]) -> str:
    """Tabulate per-component penalties."""
    df = pd.DataFrame.from_dict(breakdown, orient='index')
    df.index.name = 'component'
    df['occurrences'] = df['occurrences'].astype(np.int64)
    return df.to_string(float_format=lambda x: f"{x:.6f}")

def print_result(layout: Layout, penalty: float, title: str = "Layout",
                 breakdown: Optional[Dict[str, Dict[str, float]]] = None) -> None:
    print(visualize_layout(layout, title=title))
    print(f"Penalty: {penalty:.6f}")
    if breakdown is not None:
        print(format_breakdown(breakdown))

def print_top_results(results: List[Tuple[Layout, float]],
                      quartads: QuartadList,
                      corpus_length: int,
                      model: PenaltyModel,
                      verbose: bool = False) -> None:
    """
    Print ranked layouts with their penalties.

    Args:
        results: List of (layout, penalty) tuples, best first
        quartads: Corpus quartads, used to recompute breakdowns
        corpus_length: Number of characters in the corpus
        model: Penalty model the results were scored with
        verbose: Whether to print the per-component breakdown
    """
    print(f"\nTop {len(results)} scoring layouts:")
    for i, (layout, penalty) in enumerate(results, 1):
        print(f"\n#{i}: Penalty: {penalty:.6f}")
        breakdown = None
        if verbose:
            breakdown = calculate_penalty(quartads, corpus_length, layout, model,
                                          verbose=True).breakdown
        print_result(layout, penalty, title=f"Layout #{i}", breakdown=breakdown)

#-----------------------------------------------------------------------------
# Commands
#-----------------------------------------------------------------------------
def prepare_corpus(corpus: str) -> QuartadList:
    """Extract quartads against the reference layout's key positions."""
    quartads = prepare_quartad_list(corpus, DEFAULT_LAYOUT.get_position_map())
    print(f"Corpus: {len(corpus):,} characters, {quartads.total_count:,} typeable, "
          f"{len(quartads):,} distinct quartads")
    return quartads

def run(corpus: str, layout: Layout, config: dict, top: int, swaps: int,
        seed: Optional[int] = None, debug: bool = False,
        verbose: bool = False) -> List[Tuple[Layout, float]]:
    """Simulated annealing run."""
    model = PenaltyModel.from_config(config)
    schedule = AnnealingSchedule.from_config(config)
    quartads = prepare_corpus(corpus)
    rng = np.random.default_rng(seed)

    print(f"\nAnnealing: {schedule.iterations:,} iterations, up to {swaps} swaps each, "
          f"keeping top {top}")
    results = simulate(quartads, len(corpus), layout, model, rng, schedule=schedule,
                       top=top, swaps=swaps, debug=debug)
    print_top_results(results, quartads, len(corpus), model, verbose=verbose)
    return results

def run_ref(corpus: str, config: dict) -> List[Tuple[Layout, float]]:
    """Score the built-in layouts."""
    model = PenaltyModel.from_config(config)
    quartads = prepare_corpus(corpus)

    results = []
    for name, penalty in score_layouts(quartads, len(corpus), REFERENCE_LAYOUTS, model).items():
        print(f"\nReference: {name}")
        print_result(REFERENCE_LAYOUTS[name], penalty.total, title=name,
                     breakdown=penalty.breakdown)
        results.append((REFERENCE_LAYOUTS[name], penalty.total))
    return sorted(results, key=lambda x: x[1])

def run_refine(corpus: str, layout: Layout, config: dict, top: int, swaps: int,
               debug: bool = False, verbose: bool = False) -> List[Tuple[Layout, float]]:
    """Exhaustive refinement up to `swaps` swaps deep."""
    model = PenaltyModel.from_config(config)
    quartads = prepare_corpus(corpus)

    print(f"\nRefining: neighborhoods of up to {swaps} swaps, keeping top {top}")
    results = refine(quartads, len(corpus), layout, model, top=top, max_depth=swaps,
                     debug=debug)
    print_top_results(results, quartads, len(corpus), model, verbose=verbose)
    return results

#--------------------------------------------------------------------
# Pipeline
#--------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Search keyboard layouts for the lowest typing-effort penalty.")
    subparsers = parser.add_subparsers(dest='command', required=True)

    for command, help_text in [('run', 'simulated annealing'),
                               ('run-ref', 'score the built-in layouts'),
                               ('refine', 'exhaustive neighborhood search')]:
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument('corpus', help='UTF-8 corpus file')
        sub.add_argument('--config', default=DEFAULT_CONFIG_PATH, help='configuration file')
        if command == 'run-ref':
            continue
        sub.add_argument('layout', nargs='?', default=None,
                         help='layout file (default: built-in SHAKA layout)')
        sub.add_argument('-d', '--debug', action='store_true', help='show debug logging')
        sub.add_argument('-v', '--verbose', action='store_true',
                         help='print the penalty breakdown of each result')
        sub.add_argument('-t', '--top', default=None,
                         help='number of top layouts to print (default: from config)')
        sub.add_argument('-s', '--swaps', default=None,
                         help='maximum number of swaps per iteration, or maximum refine depth '
                              '(default: from config)')
        if command == 'run':
            sub.add_argument('--seed', default=None, help='random seed')
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        start_time = time.time()

        # Load configuration
        config = load_config(args.config)

        try:
            corpus = read_corpus(args.corpus)
        except (OSError, UnicodeDecodeError) as e:
            print(f"Error: could not read corpus {args.corpus}: {e}")
            return 1
        if not corpus:
            print(f"Error: corpus {args.corpus} is empty")
            return 1

        if args.command == 'run-ref':
            results = run_ref(corpus, config)
        else:
            try:
                layout = load_layout(args.layout)
            except (OSError, UnicodeDecodeError) as e:
                print(f"Error: could not read layout {args.layout}: {e}")
                return 1

            top = numopt(args.top, config['search']['top'], 'top')
            swaps = numopt(args.swaps, config['search']['swaps'], 'swaps')

            if args.command == 'run':
                seed = numopt(args.seed, None, 'seed', minimum=0)
                results = run(corpus, layout, config, top, swaps, seed=seed,
                              debug=args.debug, verbose=args.verbose)
            else:
                results = run_refine(corpus, layout, config, top, swaps,
                                     debug=args.debug, verbose=args.verbose)

        if config.get('output', {}).get('save_results', False):
            save_results_to_csv(results, config, args.command, args.corpus)

        elapsed = time.time() - start_time
        print(f"Total runtime: {timedelta(seconds=int(elapsed))}")
        return 0

    except Exception as e:
        print(f"Error: {e}")

        import traceback
        traceback.print_exc()
        return 1

if __name__ == "__main__":
    sys.exit(main())
