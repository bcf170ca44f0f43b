import pytest

from conftest import MENU_DATA, FakeSupervisor, vars_block
from tlgui.resources import TEXT_NOT_ENOUGH_ROOM
from tlgui.wizard import MenuTier, Stage, TerminationReason, Wizard, editable_keys


def make_wizard(backends, view, loop, args=(), **kwargs):
    supervisor = FakeSupervisor(backends)
    kwargs.setdefault("expect_admin", False)
    return Wizard(supervisor, view, loop, list(args), **kwargs)


@pytest.fixture
def at_menu(backend, view, loop):
    b = backend(["D: loading tlpdb", "Loading https://mirror/tlnet", *MENU_DATA])
    wizard = make_wizard([b], view, loop)
    wizard.start()
    assert wizard.stage.kind is Stage.MENU
    view.calls.clear()
    return wizard, b


def test_menudata_enters_basic_menu(backend, view, loop):
    b = backend(["D: loading tlpdb", "Loading https://mirror/tlnet", *MENU_DATA])
    wizard = make_wizard([b], view, loop, ["-v"])
    wizard.start()

    assert wizard.supervisor.spawned == [["-v"]]
    assert wizard.stage.kind is Stage.MENU
    assert wizard.tier is MenuTier.BASIC
    assert ("show_menu", MenuTier.BASIC) in view.calls
    assert wizard.state.release_year == "2025"
    assert wizard.state.config["selected_scheme"] == "scheme-full"
    # Diagnostics gathered during loading are consumed
    assert wizard.log == []


def test_location_switches_to_event_reading(backend, view, loop):
    b = backend(["location: https://mirror/tlnet", "D: fetching", "Loading done"])
    wizard = make_wizard([b], view, loop)
    wizard.start()

    assert wizard.stage.kind is Stage.LOADING
    assert ("show_loading", "https://mirror/tlnet") in view.calls
    assert wizard.location == "https://mirror/tlnet"
    assert loop.watchers

    loop.pump()
    assert wizard.log == ["D: fetching", "Loading done"]

    b.feed(["endload", *MENU_DATA])
    loop.pump()
    assert wizard.stage.kind is Stage.MENU
    assert loop.watchers == {}


def test_confirmation_is_answered_in_lockstep(backend, view, loop):
    view.answer = False
    b = backend(["mess_yesno", "Target exists.", "Continue?", "endmess", *MENU_DATA])
    wizard = make_wizard([b], view, loop)
    wizard.start()

    assert view.questions == ["Target exists.\nContinue?"]
    assert b.sent() == ["n"]
    assert wizard.stage.kind is Stage.MENU


def test_profile_install_skips_menu(backend, view, loop):
    b = backend(["D: using profile", "startinst"])
    wizard = make_wizard([b], view, loop)
    wizard.start()

    assert wizard.stage.kind is Stage.INSTALLING
    assert ("show_log", [], True) in view.calls
    assert b.sent() == ["startinst", "vars", "endvars"]
    assert wizard.log == []

    b.feed(["Installing [001/002, time/total: ??:??/??:??]: ae", "D: detail", "Welcome to TeX Live!"])
    b.close_output()
    loop.pump()

    assert view.transcript == [
        "Installing [001/002, time/total: ??:??/??:??]: ae",
        "Welcome to TeX Live!",
    ]
    assert wizard.transcript == view.transcript
    assert wizard.stage.reason is TerminationReason.COMPLETED
    assert view.names()[-1] == "install_finished"
    assert wizard.exit_status == 0
    assert wizard.supervisor.session is None


def test_install_refused_without_room(at_menu, view):
    wizard, b = at_menu
    wizard.state.config.set("total_size", 450)

    assert wizard.request_install() is False
    assert view.calls == [("show_error", TEXT_NOT_ENOUGH_ROOM)]
    assert wizard.stage.kind is Stage.MENU
    assert b.sent() == []


def test_install_sends_configuration(at_menu, view):
    wizard, b = at_menu

    assert wizard.request_install() is True
    sent = b.sent()
    assert sent[:2] == ["startinst", "vars"]
    assert "TEXDIR: /usr/local/texlive/2025" in sent
    assert sent[-1] == "endvars"
    assert wizard.stage.kind is Stage.INSTALLING


def test_option_change_recomputes_sizes(at_menu, view):
    wizard, b = at_menu
    reply = wizard.state.config.as_dict()
    reply.update({"collection-texworks": "1", "total_size": "350"})
    b.feed(vars_block(reply))

    wizard.set_option("collection-texworks", True)

    sent = b.sent()
    assert sent[0] == "calc"
    assert "collection-texworks: 1" in sent
    assert wizard.state.config["total_size"] == "350"
    assert view.calls == [("config_changed",)]


def test_option_without_recompute(at_menu, view):
    wizard, b = at_menu
    wizard.set_option("instopt_letter", True)
    assert wizard.state.config["instopt_letter"] == "1"
    assert b.sent() == []
    assert view.calls == [("config_changed",)]


def test_select_scheme(at_menu, view):
    wizard, b = at_menu
    wizard.escalate()
    with pytest.raises(KeyError):
        wizard.select_scheme("scheme-nonexistent")

    b.feed(vars_block({"selected_scheme": "scheme-small", "total_size": "120", "free_size": "500"}))
    wizard.select_scheme("scheme-small")

    sent = b.sent()
    assert "selected_scheme: scheme-small" in sent
    assert "scheme-small: 1" in sent
    assert "scheme-full: 0" in sent
    assert wizard.state.config["total_size"] == "120"


def test_check_dir(at_menu):
    wizard, b = at_menu
    b.feed(["1", "0"])
    assert wizard.check_dir("/opt/texlive") is True
    assert wizard.check_dir("/root/nope") is False
    assert b.sent() == ["checkdir", "/opt/texlive", "checkdir", "/root/nope"]


def test_escalation_widens_editable_keys(at_menu, view):
    wizard, _ = at_menu
    assert not wizard.can_edit("TEXMFHOME")
    with pytest.raises(KeyError):
        wizard.set_option("TEXMFHOME", "/home/me/texmf")

    assert wizard.escalate() is MenuTier.ADVANCED
    assert wizard.can_edit("TEXMFHOME")
    assert not wizard.can_edit("TEXMFVAR")
    assert wizard.escalate() is MenuTier.ALL_TREES
    assert wizard.can_edit("TEXMFVAR")
    assert wizard.escalate() is MenuTier.ALL_TREES

    assert view.calls == [
        ("show_menu", MenuTier.ADVANCED),
        ("show_menu", MenuTier.ALL_TREES),
    ]


def test_editable_keys_nest():
    basic = editable_keys(MenuTier.BASIC)
    advanced = editable_keys(MenuTier.ADVANCED)
    assert "TEXDIR" in basic
    assert basic < advanced < editable_keys(MenuTier.ALL_TREES)


def test_quit_from_menu(at_menu, view):
    wizard, _ = at_menu
    wizard.quit_menu()
    assert wizard.stage.reason is TerminationReason.QUIT
    assert view.calls == [("quit", 0)]
    assert wizard.supervisor.session is None


def test_crash_during_round_trip_exits_quietly(at_menu, view):
    wizard, b = at_menu
    b.close_output()

    wizard.update_vars()

    assert wizard.stage.reason is TerminationReason.FAILED
    assert view.calls == [("quit", 1)]
    assert wizard.exit_status == 1


def test_protocol_violation_reports_error(backend, view, loop):
    b = backend(["D: trace", "menudata", "year: 2025", "garbage"])
    wizard = make_wizard([b], view, loop)
    wizard.start()

    assert wizard.stage.reason is TerminationReason.FAILED
    kind, message = view.calls[-2]
    assert kind == "show_error"
    assert "revision expected but garbage found" in message
    assert "D: trace" in message
    assert view.calls[-1] == ("quit", 1)


def test_closed_before_location_short_log(backend, view, loop):
    b = backend(["D: perl says hello", "Cannot find repository"], eof=True)
    wizard = make_wizard([b], view, loop)
    wizard.start()

    kind, message = view.calls[-2]
    assert kind == "show_message"
    assert message.startswith("D: perl says hello\nCannot find repository\n")
    assert view.calls[-1] == ("quit", 1)


def test_closed_while_loading_long_log(backend, view, loop):
    b = backend(["location: https://mirror/tlnet"])
    wizard = make_wizard([b], view, loop)
    wizard.start()

    b.feed([f"D: attempt {i}" for i in range(12)])
    b.close_output()
    loop.pump()

    kind, lines, abortable = view.calls[-1]
    assert kind == "show_log"
    assert not abortable
    assert lines[:12] == [f"D: attempt {i}" for i in range(12)]
    assert len(lines) == 13
    assert wizard.stage.reason is TerminationReason.FAILED


def test_abort_while_loading(backend, view, loop):
    b = backend(["location: https://slow.example.org/tlnet"])
    wizard = make_wizard([b], view, loop)
    wizard.start()

    wizard.abort()
    wizard.abort()

    assert wizard.stage.reason is TerminationReason.ABORTED
    assert view.calls[-1] == ("quit", 0)
    assert view.names().count("quit") == 1
    assert loop.watchers == {}
    assert b.channel.closed


def test_mirror_selection_before_spawn(backend, view, loop):
    b = backend(MENU_DATA)
    wizard = make_wizard([b], view, loop, ["-v"], select_repository=True)
    wizard.start()

    assert wizard.stage.kind is Stage.MIRROR_SELECT
    assert view.calls == [("select_mirror",)]
    assert wizard.supervisor.spawned == []

    wizard.mirror_selected("https://mirror.example.org/tlnet")

    assert wizard.supervisor.spawned == [["-v", "-repository", "https://mirror.example.org/tlnet"]]
    assert wizard.stage.kind is Stage.MENU


def test_restart_with_other_repository(backend, view, loop):
    first = backend(["location: https://dead.example.org/tlnet"])
    second = backend(MENU_DATA)
    wizard = make_wizard([first, second], view, loop, ["-repo", "https://dead.example.org/tlnet"])
    wizard.start()
    assert loop.watchers

    wizard.restart_with_repository("/srv/tlnet")

    assert first.channel.closed
    assert wizard.supervisor.spawned[-1] == ["-repository", "/srv/tlnet"]
    assert ("show_loading", "/srv/tlnet") in view.calls
    assert wizard.stage.kind is Stage.MENU
    assert loop.watchers == {}


def test_basic_tier_refuses_advanced_edits(at_menu, view):
    wizard, b = at_menu
    before = wizard.state.config.as_dict()

    with pytest.raises(KeyError):
        wizard.select_scheme("scheme-small")
    with pytest.raises(KeyError):
        wizard.set_collections({"collection-langgerman": True})
    with pytest.raises(KeyError):
        wizard.set_binaries(["win32"])
    with pytest.raises(KeyError):
        wizard.toggle_portable()
    with pytest.raises(KeyError):
        wizard.set_option("collections", "1")

    assert wizard.state.config == before
    assert b.sent() == []
    assert view.calls == []


def test_advanced_tier_edits_selections(at_menu, view):
    wizard, b = at_menu
    wizard.escalate()

    reply = wizard.state.config.as_dict()
    reply.update({"collection-langgerman": "1", "selected_scheme": "scheme-custom"})
    b.feed(vars_block(reply))
    wizard.set_collections({"collection-langgerman": True})
    assert "selected_scheme: scheme-custom" in b.sent()

    b.feed(vars_block(wizard.state.config.as_dict()))
    wizard.set_binaries(["win32"])
    assert "binary_win32: 1" in b.sent()

    wizard.toggle_portable()
    assert wizard.state.config["instopt_portable"] == "1"


def test_edits_refused_after_menu(at_menu):
    wizard, _ = at_menu
    wizard.quit_menu()
    with pytest.raises(KeyError):
        wizard.commit_texdir("/opt/texlive/2025")


def test_confirmation_during_round_trip(at_menu, view):
    wizard, b = at_menu
    view.answer = True
    reply = wizard.state.config.as_dict()
    reply["total_size"] = "420"
    b.feed(["mess_yesno", "Continue anyway?", "endmess", *vars_block(reply)])

    wizard.update_vars()

    assert view.questions == ["Continue anyway?"]
    assert b.sent()[-1] == "y"
    assert wizard.state.config["total_size"] == "420"
    assert wizard.stage.kind is Stage.MENU
    assert view.calls == [("config_changed",)]


def test_confirmation_before_checkdir_reply(at_menu, view):
    wizard, b = at_menu
    view.answer = False
    b.feed(["mess_yesno", "Directory exists.", "endmess", "1"])

    assert wizard.check_dir("/opt/texlive") is True
    assert b.sent() == ["checkdir", "/opt/texlive", "n"]
    assert wizard.stage.kind is Stage.MENU


def test_actions_after_abort_keep_reason(at_menu, view):
    wizard, _ = at_menu
    wizard.abort()

    wizard.update_vars()
    assert wizard.check_dir("/opt/texlive") is None

    assert wizard.stage.reason is TerminationReason.ABORTED
    assert wizard.exit_status == 0
    assert view.calls == [("quit", 0)]


def test_actions_after_completion_keep_reason(backend, view, loop):
    b = backend(["startinst"])
    wizard = make_wizard([b], view, loop)
    wizard.start()
    b.close_output()
    loop.pump()
    assert wizard.stage.reason is TerminationReason.COMPLETED

    wizard.update_vars()

    assert wizard.stage.reason is TerminationReason.COMPLETED
    assert "quit" not in view.names()
