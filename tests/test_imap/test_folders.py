"""Tests for folder tree building and flattening."""

from mailprompt.imap.folders import build_folder_tree, flatten_folders, is_skipped_folder
from mailprompt.imap.types import FolderNode


def node(name: str, *children: FolderNode, noselect: bool = False, delimiter: str = "/") -> FolderNode:
    attrs = frozenset({"\\Noselect"}) if noselect else frozenset({"\\HasNoChildren"})
    return FolderNode(name=name, delimiter=delimiter, attributes=attrs, children=list(children))


class TestFlattenFolders:
    def test_depth_first_parent_before_children(self) -> None:
        tree = [
            node("INBOX", node("Receipts"), node("Travel")),
            node("Archive"),
        ]
        assert flatten_folders(tree) == ["INBOX", "INBOX/Receipts", "INBOX/Travel", "Archive"]

    def test_non_selectable_node_omitted_but_children_kept(self) -> None:
        tree = [node("[Gmail]", node("Sent Mail"), node("Drafts"), noselect=True)]
        assert flatten_folders(tree) == ["[Gmail]/Sent Mail", "[Gmail]/Drafts"]

    def test_child_delimiter_used_for_path(self) -> None:
        tree = [node("INBOX", node("Work", delimiter="."), delimiter=".")]
        assert flatten_folders(tree) == ["INBOX", "INBOX.Work"]

    def test_nonexistent_attribute_is_not_selectable(self) -> None:
        ghost = FolderNode(name="Old", attributes=frozenset({"\\NonExistent"}))
        assert flatten_folders([ghost]) == []

    def test_noselect_match_is_case_insensitive(self) -> None:
        container = FolderNode(
            name="Lists", attributes=frozenset({"\\NOSELECT"}), children=[node("python-dev")]
        )
        assert flatten_folders([container]) == ["Lists/python-dev"]

    def test_deep_nesting_under_containers(self) -> None:
        tree = [node("a", node("b", node("c"), noselect=True), noselect=True)]
        assert flatten_folders(tree) == ["a/b/c"]

    def test_empty_tree(self) -> None:
        assert flatten_folders([]) == []


class TestBuildFolderTree:
    def test_builds_hierarchy_from_list_response(self) -> None:
        listing = [
            ((b"\\HasChildren",), b"/", "INBOX"),
            ((b"\\HasNoChildren",), b"/", "INBOX/Receipts"),
            ((b"\\HasChildren", b"\\Noselect"), b"/", "[Gmail]"),
            ((b"\\HasNoChildren", b"\\Sent"), b"/", "[Gmail]/Sent Mail"),
        ]
        tree = build_folder_tree(listing)

        assert [n.name for n in tree] == ["INBOX", "[Gmail]"]
        assert [c.name for c in tree[0].children] == ["Receipts"]
        assert not tree[1].selectable
        assert flatten_folders(tree) == ["INBOX", "INBOX/Receipts", "[Gmail]/Sent Mail"]

    def test_unlisted_parent_becomes_container(self) -> None:
        tree = build_folder_tree([((), b".", "Projects.2024")])
        assert flatten_folders(tree) == ["Projects.2024"]
        assert not tree[0].selectable

    def test_parent_listed_after_child_takes_its_own_flags(self) -> None:
        listing = [
            ((), b"/", "Work/Clients"),
            ((b"\\HasChildren",), b"/", "Work"),
        ]
        tree = build_folder_tree(listing)
        assert tree[0].selectable
        assert flatten_folders(tree) == ["Work", "Work/Clients"]

    def test_missing_delimiter_keeps_name_whole(self) -> None:
        tree = build_folder_tree([((), None, "Notes/2024")])
        assert flatten_folders(tree) == ["Notes/2024"]


class TestSkippedFolders:
    def test_gmail_root_is_skipped(self) -> None:
        assert is_skipped_folder("[Gmail]")
        assert is_skipped_folder("[Google Mail]")

    def test_regular_folder_not_skipped(self) -> None:
        assert not is_skipped_folder("[Gmail]/All Mail")
        assert not is_skipped_folder("INBOX")
