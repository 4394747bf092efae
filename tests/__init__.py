"""Test the gitway module."""

LOOSE_OBJECT_PATH = "objects/31/d73eb4914a8ddb6cb0e4adf250777161118f90"
PACK_NAME = "pack-62c9f443d8405cd6da92dcbb4f849cc01a339c06"
PACK_PATH = f"objects/pack/{PACK_NAME}.pack"
IDX_PATH = f"objects/pack/{PACK_NAME}.idx"
EXAMPLE_REPO_URN = "/example_repo.git"

# Stand-in for the git executable. Pack commands echo their arguments and
# then their input, so tests can check both the command line and the
# bytes relayed through the process.
FAKE_GIT_SCRIPT = """#!/bin/sh
case "$1" in
  upload-pack|receive-pack)
    printf '%s\\n' "$*"
    case " $* " in
      *" --advertise-refs "*) exit 0 ;;
    esac
    exec cat
    ;;
  sleep-pack)
    exec sleep 30
    ;;
  quick-pack)
    exit 0
    ;;
  update-server-info)
    [ -f HEAD ] || exit 128
    mkdir -p info
    printf '0000000000000000000000000000000000000001\\trefs/heads/main\\n' > info/refs
    ;;
  config)
    [ -f "gitway-$3" ] && cat "gitway-$3"
    exit 0
    ;;
esac
exit 0
"""
