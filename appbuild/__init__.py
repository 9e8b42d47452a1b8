# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
appbuild: incremental multi-architecture app bundle builder.

Drives an external runtime compiler, LLVM backend, C toolchain, `lipo`,
`plutil` and `codesign` to turn a list of script units into a signed
application bundle.
"""
