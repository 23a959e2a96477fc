import struct

import pytest

from v1tools.filesystem import (
    BLKSIZE,
    DIRENT_PER_BLOCK,
    DIRENT_SIZE,
    I_ALLOCATED,
    I_DIR,
    I_LARGEFILE,
    I_MODFILE,
    INODE_SIZE,
    RF_SIZE,
    RK_SIZE,
    ROOTDIR_INUM,
    Directory,
    DiskType,
    FilesystemError,
    Inode,
    V1Filesystem,
    build_image,
    main,
)
from v1tools.perms import I_EXEC, I_OWRITE, I_UREAD, FilePerm


def _is_free(fs, block):
    return bool(fs.freemap[block // 8] & (1 << (block % 8)))


def _dir_entries(image, inode):
    start = inode.blocks[0] * BLKSIZE
    raw = image[start:start + inode.size]
    return {name.rstrip(b"\0"): inum for inum, name in struct.iter_unpack("<H8s", raw)}


def test_rf_image_size_and_header():
    fs = V1Filesystem(DiskType.RF)
    image = fs.image()
    assert len(image) == RF_SIZE * BLKSIZE
    assert struct.unpack_from("<H", image, 0)[0] == RF_SIZE // 8


def test_reserved_blocks_are_used():
    fs = V1Filesystem("rk")
    assert fs.disksize == RK_SIZE
    assert not any(_is_free(fs, b) for b in range(fs.nextfreeblock))
    assert _is_free(fs, fs.nextfreeblock)


def test_alloc_blocks_contiguous():
    fs = V1Filesystem()
    first = fs.nextfreeblock
    assert fs.alloc_blocks(3) == first
    assert fs.alloc_blocks(1) == first + 3
    assert not any(_is_free(fs, b) for b in range(first, first + 4))


def test_alloc_blocks_beyond_disk():
    fs = V1Filesystem(DiskType.RF)
    with pytest.raises(FilesystemError):
        fs.alloc_blocks(fs.disksize)


def test_block_inuse_out_of_range():
    fs = V1Filesystem()
    with pytest.raises(FilesystemError):
        fs.block_inuse(fs.disksize)


def test_alloc_inode_order():
    fs = V1Filesystem()
    assert fs.alloc_inode() == ROOTDIR_INUM + 1
    assert fs.alloc_inode() == ROOTDIR_INUM + 2
    assert fs.inodes[ROOTDIR_INUM + 1].flags & I_ALLOCATED


def test_special_inodes_in_image():
    fs = V1Filesystem()
    image = fs.image()
    assert fs.inodes[1].uid == 1
    assert fs.inodes[1].flags & I_ALLOCATED
    assert image[2 * BLKSIZE:2 * BLKSIZE + INODE_SIZE] == fs.inodes[1].to_bytes()


def test_inode_bytes_round_trip():
    inode = Inode(flags=I_DIR, nlinks=2, uid=3, size=40,
                  blocks=[5, 6, 0, 0, 0, 0, 0, 0], ctime=7, mtime=8)
    raw = inode.to_bytes()
    assert len(raw) == INODE_SIZE
    assert struct.unpack("<HBBH8HIIH", raw) == (I_DIR, 2, 3, 40, 5, 6, 0, 0, 0, 0, 0, 0, 7, 8, 0)


def test_directory_add_and_limits():
    d = Directory(block=5, inum=50, numentries=2)
    d.add(1, "a")
    assert d.to_bytes() == struct.pack("<H8s", 1, b"a") + bytes(DIRENT_SIZE)
    with pytest.raises(FilesystemError):
        d.add(2, "ninechars")
    d.add(2, "b")
    with pytest.raises(FilesystemError):
        d.add(3, "c")


def test_create_root_dir():
    fs = V1Filesystem()
    root = fs.create_dir("/", 4, None)
    assert root.inum == ROOTDIR_INUM
    assert fs.rootdir is root
    assert root.numentries == DIRENT_PER_BLOCK
    assert root.entries == [(ROOTDIR_INUM, b".."), (ROOTDIR_INUM, b".")]


def test_create_subdir_links():
    fs = V1Filesystem()
    root = fs.create_dir("/", 1, None)
    sub = fs.create_dir("bin", 4, root)
    assert sub.entries[0] == (ROOTDIR_INUM, b"..")
    assert (sub.inum, b"bin") in root.entries
    assert fs.inodes[ROOTDIR_INUM].nlinks == 3
    assert fs.inodes[sub.inum].flags & I_DIR


def test_create_dir_errors():
    fs = V1Filesystem()
    root = fs.create_dir("/", 1, None)
    with pytest.raises(FilesystemError):
        fs.create_dir("big", 9, root)
    with pytest.raises(FilesystemError):
        fs.create_dir("muchtoolong", 1, root)
    with pytest.raises(FilesystemError):
        fs.create_dir("orphan", 1, None)


def test_create_small_file():
    fs = V1Filesystem()
    root = fs.create_dir("/", 1, None)
    data = b"hello" * 200
    first = fs.create_file(root, "f", data)
    inum = root.entries[-1][0]
    inode = fs.inodes[inum]
    image = fs.image()
    assert image[first * BLKSIZE:first * BLKSIZE + len(data)] == data
    assert inode.size == len(data)
    assert inode.blocks[:2] == [first, first + 1]
    assert inode.flags & I_MODFILE and inode.flags & I_OWRITE


def test_create_large_file_uses_indirect_block():
    fs = V1Filesystem()
    root = fs.create_dir("/", 1, None)
    data = bytes(range(256)) * 20
    first = fs.create_file(root, "big", data)
    inode = fs.inodes[root.entries[-1][0]]
    indirect = inode.blocks[0]
    image = fs.image()
    assert inode.flags & I_LARGEFILE
    assert first == indirect + 1
    assert struct.unpack_from("<10H", image, indirect * BLKSIZE) == tuple(range(first, first + 10))
    assert image[first * BLKSIZE:first * BLKSIZE + len(data)] == data


def test_create_file_with_perm():
    fs = V1Filesystem()
    root = fs.create_dir("/", 1, None)
    fs.create_file(root, "f", b"x", FilePerm("x/f", I_EXEC | I_UREAD, 7, 1234))
    inode = fs.inodes[root.entries[-1][0]]
    assert inode.uid == 7
    assert inode.mtime == 1234 and inode.ctime == 1234
    assert inode.flags & (I_MODFILE | I_EXEC | I_UREAD) == I_MODFILE | I_EXEC | I_UREAD
    assert not inode.flags & I_OWRITE


def test_rf_build_makes_dev(tmp_path):
    fs = V1Filesystem(DiskType.RF)
    image = fs.build(tmp_path)
    root_names = _dir_entries(image, fs.inodes[ROOTDIR_INUM])
    assert b"dev" in root_names
    dev = _dir_entries(image, fs.inodes[root_names[b"dev"]])
    assert dev[b"tty8"] == 1
    assert dev[b"lpr"] == 22


def test_build_tree(tmp_path):
    (tmp_path / "bin").mkdir()
    (tmp_path / "bin" / "ls").write_bytes(b"ls-program")
    (tmp_path / "readme").write_bytes(b"text")
    (tmp_path / "toolongname").write_bytes(b"skip")
    fs = V1Filesystem("rk", perms=[FilePerm("bin/ls", I_EXEC, 3, 99)])
    image = fs.build(tmp_path)
    root = _dir_entries(image, fs.inodes[ROOTDIR_INUM])
    assert b"bin" in root and b"readme" in root
    assert b"toolongname" not in root
    assert b"dev" not in root
    bin_dir = _dir_entries(image, fs.inodes[root[b"bin"]])
    assert bin_dir[b".."] == ROOTDIR_INUM
    ls = fs.inodes[bin_dir[b"ls"]]
    assert ls.uid == 3 and ls.mtime == 99
    start = ls.blocks[0] * BLKSIZE
    assert image[start:start + ls.size] == b"ls-program"


def test_build_image_size(tmp_path):
    assert len(build_image(tmp_path, "rk")) == RK_SIZE * BLKSIZE


def test_main_usage_errors(tmp_path):
    assert main([]) == 1
    assert main([str(tmp_path), str(tmp_path / "img"), "xx"]) == 1


def test_main_writes_image(tmp_path):
    top = tmp_path / "top"
    top.mkdir()
    (top / "motd").write_bytes(b"hi")
    out = tmp_path / "disk.img"
    assert main([str(top), str(out), "rf"]) == 0
    assert out.stat().st_size == RF_SIZE * BLKSIZE


def test_main_missing_topdir(tmp_path):
    assert main([str(tmp_path / "absent"), str(tmp_path / "img"), "rk"]) == 1