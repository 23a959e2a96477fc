# v1tools

Command-line tools and a small library for working with First Edition UNIX
and other early PDP-11 UNIX software under a simulator.

- **v1-loadfile**: turn a PDP-11 `a.out` executable into a paper-tape style
  absolute loader file.
- **v1-mkfs**: build a 1st Edition UNIX filesystem image for an RF11 or RK03
  disk from a directory tree.

The library also holds the pieces for reading permission listings, keeping
symbol tables of PDP-11 code, and naming system calls.

No third-party libraries are needed.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Loader files

```
v1-loadfile [aout [loadfile]]
```

Reads `aout` (default `a.out`) and writes its text and data segments as
checksummed loader blocks, followed by the end block, to `loadfile` (default
`loadfile`). The header fields and the size of each segment loaded are
printed. Each block is `001 000`, a byte count that includes the six header
bytes, a load origin, the data and a checksum that makes the block's byte sum
zero modulo 256; the final block has a count of six and no checksum. A
segment of 64K or more produces no block. On failure a message ending in
`failed?` goes to standard error; the exit status is always 0.

From Python, `v1tools.loadfile` offers `parse_header` (returning a
`LoaderHeader`), `data_block`, `end_block`, `convert_aout` and
`convert_file`. A truncated executable raises `LoadFileError`.

```python
from v1tools.loadfile import convert_aout

with open("a.out", "rb") as f:
    tape = convert_aout(f.read())
```

## Filesystem images

```
v1-mkfs [-d] [-p permsfile] topdir image rk|rf
```

`topdir` holds the tree to copy (`bin/`, `etc/`, `tmp/`, …); `image` is the
disk image written; the last argument picks an RK03 (4864 blocks) or an RF11
(1024 blocks) disk. An RF11 image also gets a `/dev` directory with the fixed
device i-numbers. `-d` prints what is being allocated. `-p` reads a
permissions listing, applied to the matching files. The exit status is 1 on
bad arguments or when the image cannot hold the tree.

Directories take four contiguous blocks (the root takes one); files take
contiguous blocks, with one indirect block for files of more than eight
blocks. Files larger than one indirect block (128K) and names longer than
eight characters are skipped with a message.

In Python:

```python
from v1tools.filesystem import DiskType, build_image
from v1tools.perms import read_permsfile

image = build_image("root", DiskType.RF, read_permsfile("perms.txt"))
```

`V1Filesystem` gives finer control over blocks, i-nodes and directories
(`alloc_blocks`, `alloc_inode`, `create_dir`, `create_file`, `add_devdir`,
`image` and so on); allocation failures raise `FilesystemError`.

## Permission listings

`v1tools.perms` reads the `-p` listings. Lines before the first line
beginning with `=` are ignored; each line after it looks like

```
xrwr- 3 /usr/bin/ed 123456
```

giving execute (`x`) or setuid (`u`), owner read and write, other read and
write, the owner, the full path and the modification time in sixtieths of a
second. The path is stored without its leading `/` or `/usr/`. At most 500
entries are kept. `parse_perm_line`, `parse_permsfile`, `read_permsfile`
(a missing file gives no entries) and `find_perm` return `FilePerm` values.

## Symbol tables and system calls

`v1tools.symbols.SymbolTable` keeps instruction and data symbols by address.
`add` records an unnamed symbol of a `SymbolType` unless one of equal or
higher type is already there; `patch_names` names them (`func1`, `data2`,
`jsrtext3`, plain numbers for branch labels); `load_0407` reads the symbol
table of an `0407` executable; `dump` lists everything.

`v1tools.syscalls` holds `V1_SYSCALLS` and `BSD211_SYSCALLS`, tables of
`SyscallInfo` giving each call's name and the number of argument words that
follow the trap instruction; `lookup` returns the entry for a call number.

## What is not included

There is no command to pack files into or unpack them from simulator tape
images, and no disassembler command or instruction decoder: the symbol and
system call tables above are provided as library pieces only. Executables are
not classified by UNIX edition.