# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Native entry module generation.

`render_entry_source` is a pure function of the ordered init symbols, the
architecture set, and the app name. `build_entry_object` compiles the text only
when it differs from what produced the existing object.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from appbuild.archs import Architecture
from appbuild.toolchain import Toolchain

_log = logging.getLogger(__name__)

RUNTIME_DECLS = (
	"void ruby_sysinit(int *, char ***);",
	"void ruby_init(void);",
	"void ruby_init_loadpath(void);",
	"void ruby_script(const char *);",
	"void ruby_set_argv(int, char **);",
	"void rb_vm_init_compiler(void);",
	"void rb_vm_init_jit(void);",
	"void rb_vm_aot_feature_provide(const char *, void *);",
	"void *rb_vm_top_self(void);",
	"void rb_vm_print_current_exception(void);",
	"void rb_exit(int);",
)


def render_entry_source(
	init_symbols: Sequence[str],
	archs: Sequence[Architecture],
	app_name: str,
	*,
	delegate_class: str = "AppDelegate",
) -> str:
	lines: list[str] = [
		f"// {app_name} entry point; architectures: {' '.join(a.name for a in archs)}",
		"#import <UIKit/UIKit.h>",
		"",
		'extern "C" {',
	]
	lines += [f"\t{d}" for d in RUNTIME_DECLS]
	lines += [f"\tvoid {sym}(void *, void *);" for sym in init_symbols]
	lines += [
		"}",
		"",
		"int",
		"main(int argc, char **argv)",
		"{",
		"\tNSAutoreleasePool *pool = [[NSAutoreleasePool alloc] init];",
		"\tconst char *progname = argv[0];",
		"\truby_init();",
		"\truby_init_loadpath();",
		"\truby_script(progname);",
		"\ttry {",
		"\t\tvoid *self = rb_vm_top_self();",
	]
	lines += [f"\t\t{sym}(self, 0);" for sym in init_symbols]
	lines += [
		"\t}",
		"\tcatch (...) {",
		"\t\trb_vm_print_current_exception();",
		"\t\trb_exit(1);",
		"\t}",
		f'\tint retval = UIApplicationMain(argc, argv, nil, @"{delegate_class}");',
		"\t[pool release];",
		"\trb_exit(retval);",
		"}",
	]
	return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class EntryObject:
	source_path: Path
	object_path: Path
	rebuilt: bool


def build_entry_object(toolchain: Toolchain, objs_dir: Path, text: str, archs: Sequence[Architecture]) -> EntryObject:
	"""
	Compile `text` to `objs_dir/main/main.o` unless the cached text matches.

	The source and object are produced under temporary names and renamed into
	place after a successful compile, so `main.mm` never describes an object it
	did not produce.
	"""
	main_dir = objs_dir / "main"
	src = main_dir / "main.mm"
	obj = main_dir / "main.o"
	if src.exists() and obj.exists() and src.read_text(encoding="utf-8") == text:
		_log.debug("entry module up to date")
		return EntryObject(source_path=src, object_path=obj, rebuilt=False)

	main_dir.mkdir(parents=True, exist_ok=True)
	tmp_src = main_dir / f"main.tmp.{os.getpid()}.mm"
	tmp_obj = main_dir / f"main.tmp.{os.getpid()}.o"
	tmp_src.write_text(text, encoding="utf-8")
	_log.info("compiling entry module")
	toolchain.compile_entry(tmp_src, tmp_obj, archs=archs)
	os.replace(tmp_obj, obj)
	os.replace(tmp_src, src)
	return EntryObject(source_path=src, object_path=obj, rebuilt=True)
