"""Build 1st Edition UNIX filesystem images for RK03 and RF11 disks.

Block 0 holds the free-block bitmap and the i-node bitmap, i-nodes start at
block 2, and files and directories follow, each in contiguous blocks.
"""
from __future__ import annotations

import enum
import getopt
import logging
import os
import stat
import struct
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field

from .perms import (
    I_EXEC,
    I_OREAD,
    I_OWRITE,
    I_UREAD,
    I_UWRITE,
    FilePerm,
    find_perm,
    read_permsfile,
)

log = logging.getLogger(__name__)

BLKSIZE = 512
RF_SIZE = 1024
RK_SIZE = 4864
INODE_RATIO = 4
ROOTDIR_INUM = 41
NUMDIRECTBLKS = 8
BLKSPERINDIRECT = 256
MAX_FILE_SIZE = BLKSPERINDIRECT * BLKSIZE
DIRBLOCKS = 4

I_ALLOCATED = 0o100000
I_DIR = 0o040000
I_MODFILE = 0o020000
I_LARGEFILE = 0o010000

_INODE = struct.Struct("<HBBH8HIIH")
INODE_SIZE = _INODE.size
INODES_PER_BLOCK = BLKSIZE // INODE_SIZE
_DIRENT = struct.Struct("<H8s")
DIRENT_SIZE = _DIRENT.size
DIRENT_PER_BLOCK = BLKSIZE // DIRENT_SIZE

DEVICES = (
    ("tty", 1), ("ppt", 2), ("mem", 3), ("rf0", 4), ("rk0", 5),
    ("tap0", 6), ("tap1", 7), ("tap2", 8), ("tap3", 9), ("tap4", 10),
    ("tap5", 11), ("tap6", 12), ("tap7", 13), ("tty0", 14), ("tty1", 15),
    ("tty2", 16), ("tty3", 17), ("tty4", 18), ("tty5", 19), ("tty6", 20),
    ("tty7", 21), ("lpr", 22), ("tty8", 1),
)

_USAGE = (
    "Usage: mkfs [-d] [-p permsfile] topdir image rk/rf\n"
    "\ttopdir is an existing dir which holds bin/, etc/, tmp/ ...\n"
    "\timage will be the image created\n"
    "\tlast argument is either 'rk' or 'rf'\n"
    "\t-d enables debugging output\n"
    "\t-p reads the named file to obtain a list of V1 file permissions"
)


class FilesystemError(Exception):
    """Raised when the image cannot hold what is asked of it."""


class DiskType(enum.Enum):
    """The two disks a 1st Edition system runs from."""

    RK = "rk"
    RF = "rf"

    @property
    def blocks(self) -> int:
        return RK_SIZE if self is DiskType.RK else RF_SIZE

    @property
    def makes_dev(self) -> bool:
        """Whether a /dev directory is built, as cold UNIX does on the RF."""
        return self is DiskType.RF


def _encode(name: str | bytes) -> bytes:
    return name if isinstance(name, bytes) else os.fsencode(name)


@dataclass
class Inode:
    """A 32-byte 1st Edition i-node."""

    flags: int = 0
    nlinks: int = 0
    uid: int = 0
    size: int = 0
    blocks: list[int] = field(default_factory=lambda: [0] * NUMDIRECTBLKS)
    ctime: int = 0
    mtime: int = 0
    unused: int = 0

    def to_bytes(self) -> bytes:
        return _INODE.pack(
            self.flags & 0xFFFF,
            self.nlinks & 0xFF,
            self.uid & 0xFF,
            self.size & 0xFFFF,
            *(block & 0xFFFF for block in self.blocks),
            self.ctime & 0xFFFFFFFF,
            self.mtime & 0xFFFFFFFF,
            self.unused & 0xFFFF,
        )


@dataclass
class Directory:
    """A directory being built: its first block, i-number and entries."""

    block: int
    inum: int
    numentries: int
    entries: list[tuple[int, bytes]] = field(default_factory=list)

    @property
    def nextfree(self) -> int:
        return len(self.entries)

    def add(self, inum: int, name: str | bytes) -> None:
        """Append an entry; names are at most eight bytes."""
        raw = _encode(name)
        if len(raw) > 8:
            raise FilesystemError(f"Name {os.fsdecode(raw)} too long")
        if self.nextfree >= self.numentries:
            raise FilesystemError("Unable to add directory entry")
        self.entries.append((inum & 0xFFFF, raw))

    def to_bytes(self) -> bytes:
        body = b"".join(_DIRENT.pack(inum, raw) for inum, raw in self.entries)
        return body.ljust(self.numentries * DIRENT_SIZE, b"\0")


class V1Filesystem:
    """An in-memory 1st Edition filesystem image."""

    def __init__(
        self,
        disk_type: DiskType | str = DiskType.RK,
        perms: Iterable[FilePerm] | None = None,
    ) -> None:
        self.disk_type = DiskType(disk_type)
        self.perms = list(perms or [])
        self.makedev = self.disk_type.makes_dev
        self.disksize = self.disk_type.blocks
        self._data = bytearray(self.disksize * BLKSIZE)
        self.freemap = bytearray(b"\xff" * (self.disksize // 8))
        self.block_inuse(0)
        self.block_inuse(1)

        self.icount = 8 * (self.disksize // INODE_RATIO // 8)
        self.inodemap = bytearray((self.icount - ROOTDIR_INUM + 7) // 8)
        self.inodes = [Inode() for _ in range(self.icount)]
        for inode in self.inodes[:ROOTDIR_INUM]:
            inode.flags |= I_ALLOCATED | I_UREAD | I_UWRITE | I_OREAD | I_OWRITE
            inode.nlinks = 1
            inode.uid = 1
            inode.mtime = 0x38 << 24

        numiblocks = (self.icount + INODES_PER_BLOCK - 1) // INODES_PER_BLOCK
        log.debug("%d i-nodes, %d i-node blocks", self.icount, numiblocks)
        self.nextfreeblock = 2 + numiblocks
        for block in range(2, self.nextfreeblock):
            self.block_inuse(block)

        self.inode_inuse(ROOTDIR_INUM)
        self.rootdir: Directory | None = None

    def block_inuse(self, n: int) -> None:
        """Mark block ``n`` as used in the free map."""
        if not 0 <= n < self.disksize:
            raise FilesystemError(f"Cannot mark block {n} >= disk size {self.disksize}")
        self.freemap[n // 8] &= ~(1 << (n % 8)) & 0xFF

    def inode_inuse(self, n: int) -> None:
        """Mark i-node ``n`` as allocated."""
        if not ROOTDIR_INUM <= n < self.icount:
            raise FilesystemError(f"Cannot mark inode {n} >= icount {self.icount}")
        self.inodes[n].flags |= I_ALLOCATED
        offset = n - ROOTDIR_INUM
        self.inodemap[offset // 8] |= 1 << (offset % 8)

    def alloc_inode(self) -> int:
        """Allocate the lowest free i-node above the root and return its number."""
        for inum in range(ROOTDIR_INUM + 1, self.icount):
            if self.inodes[inum].flags == 0:
                self.inode_inuse(inum)
                return inum
        raise FilesystemError("Cannot allocate a new i-node")

    def alloc_blocks(self, n: int) -> int:
        """Allocate ``n`` contiguous blocks and return the first."""
        if self.nextfreeblock + n >= self.disksize:
            raise FilesystemError(f"Unable to allocate {n} more blocks")
        first = self.nextfreeblock
        for block in range(first, first + n):
            self.block_inuse(block)
        self.nextfreeblock += n
        return first

    def alloc_indirect_blocks(self, n: int) -> int:
        """Allocate an indirect block followed by ``n`` data blocks.

        The indirect block lists the data blocks; its number is returned.
        """
        if n > BLKSPERINDIRECT:
            raise FilesystemError(
                f"Unable to allocate more than {BLKSPERINDIRECT} blocks in indirect"
            )
        indirect = self.alloc_blocks(n + 1)
        log.debug("Allocated %d blocks, indirect is block %d", n + 1, indirect)
        pointers = struct.pack(f"<{n}H", *range(indirect + 1, indirect + 1 + n))
        self._write(indirect * BLKSIZE, pointers.ljust(BLKSIZE, b"\0"))
        return indirect

    def create_dir(
        self, name: str, numblocks: int, parent: Directory | None
    ) -> Directory:
        """Create a directory and link it into ``parent``.

        The name "/" makes the root directory, which is its own parent.
        """
        if numblocks > NUMDIRECTBLKS:
            raise FilesystemError("Can't allocate >8 blocks per directory")
        if len(_encode(name)) > 8:
            raise FilesystemError(f"Name {name} too long")
        is_root = name == "/"
        if is_root:
            numblocks = 1
        elif parent is None:
            raise FilesystemError("A parent directory is required")

        inum = ROOTDIR_INUM if is_root else self.alloc_inode()
        block = self.alloc_blocks(numblocks)
        directory = Directory(block=block, inum=inum,
                              numentries=numblocks * DIRENT_PER_BLOCK)
        if is_root:
            self.rootdir = parent = directory
        log.debug("In create_dir, got back inum %d blk %d, %d config blks",
                  inum, block, numblocks)

        inode = self.inodes[inum]
        inode.flags |= I_DIR | I_UREAD | I_UWRITE | I_OREAD
        inode.nlinks = 2
        inode.blocks[:numblocks] = range(block, block + numblocks)

        assert parent is not None
        if not is_root:
            parent.add(inum, name)
            self.inodes[parent.inum].nlinks += 1
        directory.add(parent.inum, "..")
        directory.add(inum, ".")
        log.debug("Created dir for %s, inum %d", name, inum)
        return directory

    def write_dir(self, directory: Directory) -> None:
        """Store a directory's entries and set its size in its i-node."""
        self.inodes[directory.inum].size = directory.nextfree * DIRENT_SIZE
        self._write(directory.block * BLKSIZE, directory.to_bytes())

    def add_devdir(self) -> Directory:
        """Create /dev with the fixed device i-numbers of cold UNIX."""
        if self.rootdir is None:
            raise FilesystemError("The root directory must exist first")
        directory = self.create_dir("dev", 1, self.rootdir)
        for name, inum in DEVICES:
            directory.add(inum, name)
        self.write_dir(directory)
        return directory

    def create_file(
        self,
        directory: Directory,
        name: str,
        data: bytes,
        perm: FilePerm | None = None,
    ) -> int:
        """Create a file holding ``data`` and return its first data block.

        Files too large for one indirect block are skipped and give 0.
        """
        size = len(data)
        if size > MAX_FILE_SIZE:
            print(f"File {name} is a very large file, skipping")
            return 0

        inum = self.alloc_inode()
        inode = self.inodes[inum]
        numblocks = (size + BLKSIZE - 1) // BLKSIZE
        if numblocks > NUMDIRECTBLKS:
            indirect = self.alloc_indirect_blocks(numblocks)
            inode.flags |= I_LARGEFILE
            inode.blocks[0] = indirect
            first = indirect + 1
        else:
            first = self.alloc_blocks(numblocks)
            inode.blocks[:numblocks] = range(first, first + numblocks)

        inode.nlinks = 1
        inode.size = size
        if perm is not None:
            inode.uid = perm.uid
            inode.mtime = inode.ctime = perm.mtime
            inode.flags |= I_MODFILE | perm.flags
        else:
            inode.uid = 0
            inode.mtime = inode.ctime = 0
            inode.flags |= (I_MODFILE | I_EXEC | I_UREAD | I_UWRITE
                            | I_OREAD | I_OWRITE)

        directory.add(inum, name)
        log.debug("Created file %s size %d inum %d", name, size, inum)
        self._write(first * BLKSIZE, data)
        return first

    def add_files(
        self, basedir: str, dirname: str, parent: Directory | None
    ) -> Directory:
        """Make ``/dirname`` on the image and fill it from ``basedir/dirname``."""
        noslash = "" if dirname == "/" else dirname
        here = f"{basedir}/{noslash}"
        try:
            names = sorted(os.listdir(here))
        except OSError as exc:
            raise FilesystemError(f"Cannot opendir {here}") from exc

        directory = self.create_dir(dirname, DIRBLOCKS, parent)
        if self.makedev and dirname == "/":
            self.add_devdir()

        for name in names:
            fullname = f"{basedir}/{noslash}/{name}"
            try:
                info = os.stat(fullname)
            except OSError:
                print(f"Cannot stat {fullname}")
                continue
            if stat.S_ISDIR(info.st_mode):
                log.debug("Recursing into %s/%s", here, name)
                self.add_files(here, name, directory)
            if not stat.S_ISREG(info.st_mode):
                continue
            if info.st_size > MAX_FILE_SIZE:
                print(f"Skipping very large file {fullname} for now")
                continue
            if len(_encode(name)) > 8:
                print(f"Skipping long filename {fullname} for now")
                continue
            perm = find_perm(self.perms, dirname, name)
            try:
                with open(fullname, "rb") as src:
                    data = src.read()
            except OSError as exc:
                raise FilesystemError(
                    f"Unable to read {fullname} to copy onto image"
                ) from exc
            self.create_file(directory, name, data, perm)

        self.write_dir(directory)
        return directory

    def build(self, topdir: str | os.PathLike[str]) -> bytes:
        """Fill the image from the tree at ``topdir`` and return its bytes."""
        self.add_files(os.fspath(topdir), "/", self.rootdir)
        assert self.rootdir is not None
        self.write_dir(self.rootdir)
        return self.image()

    def image(self) -> bytes:
        """Return the disk image with its bitmaps and i-node list in place."""
        freemap_size = self.disksize // 8
        inodemap_size = self.icount // 8
        head = (
            struct.pack("<H", freemap_size)
            + bytes(self.freemap[:freemap_size])
            + struct.pack("<H", inodemap_size)
            + bytes(self.inodemap[:(self.icount - ROOTDIR_INUM) // 8])
        )
        self._write(0, head)
        table = b"".join(inode.to_bytes() for inode in self.inodes[1:])
        self._write(2 * BLKSIZE, table)
        return bytes(self._data)

    def _write(self, offset: int, data: bytes) -> None:
        self._data[offset:offset + len(data)] = data


def build_image(
    topdir: str | os.PathLike[str],
    disk_type: DiskType | str = DiskType.RK,
    perms: Iterable[FilePerm] | None = None,
) -> bytes:
    """Build and return a complete image of the tree at ``topdir``."""
    return V1Filesystem(disk_type, perms).build(topdir)


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point; returns the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        opts, rest = getopt.getopt(args, "dp:")
    except getopt.GetoptError as exc:
        print(f"mkfs: {exc}", file=sys.stderr)
        print(_USAGE)
        return 1

    perms: list[FilePerm] = []
    for opt, value in opts:
        if opt == "-d":
            logging.basicConfig(level=logging.DEBUG, stream=sys.stdout,
                                format="%(message)s")
        else:
            found = read_permsfile(value)
            perms = found + perms[len(found):]

    if len(rest) != 3 or rest[2] not in ("rk", "rf"):
        print(_USAGE)
        return 1
    topdir, image_path, disk = rest

    try:
        image = build_image(topdir, DiskType(disk), perms)
    except FilesystemError as exc:
        print(exc)
        return 1
    try:
        with open(image_path, "wb") as out:
            out.write(image)
    except OSError:
        print(f"Unable to create image {image_path}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())