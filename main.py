"""
toyexpr - Main Entry Point
Reads one program from a file or standard input, evaluates it and prints the result
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from error_handling import InterpreterError, ParseError
from expressions import pretty_print_expr, to_source
from interpreter import create_debug_interpreter, create_interpreter
from parsing import create_debug_parser, create_parser, KEYWORD_PARSERS
from utilities import format_bindings


VERSION = "toyexpr 0.1.0"
FAILURE_INDICATOR = "ERROR"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='toyexpr - integer expressions with let, functions, set and block',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s program.txt                  # Run a program file
  echo "(add (val 1) (val 2))" | %(prog)s  # Run a program from stdin
  %(prog)s -i                           # Interactive mode
  %(prog)s --parse program.txt          # Parse and show the expression tree
  %(prog)s --debug program.txt          # Run with evaluation trace on stderr
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='program file to execute (defaults to standard input)'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse the program and show the expression tree'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Trace parsing and evaluation on stderr'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def report_failure(error: Exception) -> None:
  """Print the failure indicator followed by the diagnostic"""
  print(FAILURE_INDICATOR)
  print(error)


def read_script(script_path: str) -> str:
  """Read a program file, exiting with a hint when it cannot be read"""
  try:
    with open(script_path, 'r', encoding='utf-8') as f:
      return f.read()
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found")
    print(f"  Hint: Check the file path and make sure the file exists")
    sys.exit(1)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'")
    print(f"  Hint: Make sure you have read permissions for this file")
    sys.exit(1)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}")
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding")
    sys.exit(1)


def parse_source(text: str, filename: str, debug: bool = False) -> None:
  """Parse a program and show its expression tree"""
  parser = create_debug_parser() if debug else create_parser()

  try:
    expr = parser.parse_string(text, filename)
  except ParseError as e:
    report_failure(e)
    sys.exit(1)

  print(to_source(expr))
  print(pretty_print_expr(expr), end='')


def run_program(text: str, filename: str, debug: bool = False) -> None:
  """Parse and evaluate a program, printing one result line"""
  parser = create_debug_parser() if debug else create_parser()
  interpreter = create_debug_interpreter() if debug else create_interpreter()

  try:
    if debug:
      print(f"Parsing {filename}...", file=sys.stderr)
    expr = parser.parse_string(text, filename)
    result = interpreter.interpret(expr)
  except InterpreterError as e:
    report_failure(e)
    if debug and interpreter.bindings:
      print("Environment at error:", file=sys.stderr)
      for line in format_bindings(interpreter.bindings):
        print(line, file=sys.stderr)
    sys.exit(1)

  print(to_source(result))


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser("~/.toyexpr_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet, or permission denied

  readline.set_history_length(1000)

  completions = sorted(KEYWORD_PARSERS) + [
      "then", "else", "in",
      # REPL commands
      ":parse", ":env", ":reset", ":help", "exit"
  ]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(readline.write_history_file, history_file)


def print_repl_help() -> None:
  print("REPL Commands:")
  print("  :parse <expr>     - Show the expression tree")
  print("  :env              - Show current environment")
  print("  :reset            - Clear the environment")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language:")
  print("  (val 3) (var x) (add E E)")
  print("  (if E E then E else E)      - then-branch when left > right")
  print("  (let x = E in E)")
  print("  (function x E) (call F E)")
  print("  (set x E) (block E ...)")


def run_interactive_mode(debug: bool = False) -> None:
  """Run toyexpr interactively; bindings made with set persist between lines"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  parser = create_debug_parser() if debug else create_parser()
  interpreter = create_debug_interpreter() if debug else create_interpreter()

  while True:
    try:
      code = input("toyexpr> ").strip()
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    if code == "exit":
      break

    if not code:
      continue

    if code.startswith(":parse "):
      try:
        print(pretty_print_expr(parser.parse_string(code[7:], "<repl>")), end='')
      except ParseError as e:
        print(e)
      continue

    if code == ":env":
      print("Current environment:")
      if interpreter.bindings:
        for line in format_bindings(interpreter.bindings, limit=50):
          print(line)
      else:
        print("  (no bindings)")
      continue

    if code == ":reset":
      interpreter.reset()
      print("Environment cleared")
      continue

    if code == ":help":
      print_repl_help()
      continue

    try:
      result = interpreter.interpret(parser.parse_string(code, "<repl>"))
      print(f"=> {to_source(result)}")
    except InterpreterError as e:
      print(f"{FAILURE_INDICATOR}: {e}")


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for toyexpr"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if args.interactive:
    run_interactive_mode(debug=args.debug)
    return

  if args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist")
      sys.exit(1)
    text, filename = read_script(args.script), args.script
  elif not sys.stdin.isatty():
    text, filename = sys.stdin.read(), "<stdin>"
  else:
    run_interactive_mode(debug=args.debug)
    return

  if args.parse:
    parse_source(text, filename, debug=args.debug)
  else:
    run_program(text, filename, debug=args.debug)


if __name__ == "__main__":
  main()
