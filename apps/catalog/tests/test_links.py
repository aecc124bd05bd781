"""Configuration links: link edits, single install per configuration, auto-update cascade, validity flags."""

import pytest

from apps.catalog.models.configuration import Configuration
from apps.catalog.models.configuration_link import (
    ConfigurationApplication,
    ConfigurationApplicationVersion,
    LinkAction,
)
from apps.catalog.schemas.requests import LinkItem, VersionLinkItem
from apps.catalog.services import catalog, links, repo
from apps.catalog.services.errors import EntityNotFoundError, TenantAccessViolationError


def _version_links(tenant_id, version_id):
    with repo.transaction() as s:
        return {link.configuration_id: link.action for link in repo.list_version_links(s, tenant_id, version_id)}


def _app_links(tenant_id, application_id):
    with repo.transaction() as s:
        return repo.list_application_links(s, tenant_id, application_id)


def test_application_link_insert_update_remove(ctx_a, upload, make_configuration) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0").application
    configuration_id = make_configuration("A")

    catalog.update_application_links(ctx_a, app.id, [LinkItem(configuration_id=configuration_id, action=LinkAction.INSTALL)])
    [link] = _app_links("A", app.id)
    assert link.action == LinkAction.INSTALL
    assert link.application_version_id == app.latest_version_id
    assert link.auto_update is False

    catalog.update_application_links(
        ctx_a, app.id, [LinkItem(id=link.id, configuration_id=configuration_id, action=LinkAction.PERMIT, auto_update=True)]
    )
    [link] = _app_links("A", app.id)
    assert (link.action, link.auto_update) == (LinkAction.PERMIT, True)

    catalog.update_application_links(ctx_a, app.id, [LinkItem(id=link.id, configuration_id=configuration_id, action=LinkAction.REMOVE)])
    assert _app_links("A", app.id) == []


def test_application_links_of_other_tenant_configuration_are_rejected(ctx_a, upload, make_configuration) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0").application
    foreign_configuration = make_configuration("B")
    with pytest.raises(EntityNotFoundError):
        catalog.update_application_links(
            ctx_a, app.id, [LinkItem(configuration_id=foreign_configuration, action=LinkAction.INSTALL)]
        )


def test_links_to_private_application_of_other_tenant_are_rejected(ctx_a, ctx_b, upload, make_configuration) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0").application
    configuration_id = make_configuration("B")
    with pytest.raises(TenantAccessViolationError):
        catalog.update_application_links(ctx_b, app.id, [LinkItem(configuration_id=configuration_id, action=LinkAction.INSTALL)])


def test_version_install_demotes_sibling_install(ctx_a, upload, add_version, make_configuration) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0")
    v2 = add_version(ctx_a, app.application.id, "2.0")
    configuration_id = make_configuration("A")

    catalog.update_version_links(ctx_a, app.version.id, [VersionLinkItem(configuration_id=configuration_id, action=LinkAction.INSTALL)])
    catalog.update_version_links(ctx_a, v2.id, [VersionLinkItem(configuration_id=configuration_id, action=LinkAction.INSTALL)])

    assert _version_links("A", app.version.id) == {configuration_id: LinkAction.PROHIBIT}
    assert _version_links("A", v2.id) == {configuration_id: LinkAction.INSTALL}


def test_version_links_are_replaced_and_remove_items_dropped(ctx_a, upload, make_configuration) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0")
    first = make_configuration("A", "First")
    second = make_configuration("A", "Second")

    catalog.update_version_links(
        ctx_a,
        app.version.id,
        [
            VersionLinkItem(configuration_id=first, action=LinkAction.INSTALL),
            VersionLinkItem(configuration_id=second, action=LinkAction.PERMIT),
        ],
    )
    catalog.update_version_links(ctx_a, app.version.id, [VersionLinkItem(configuration_id=second, action=LinkAction.REMOVE)])
    assert _version_links("A", app.version.id) == {}


def test_version_links_keep_other_tenants(ctx_a, ctx_b, super_ctx, add_version, make_configuration, load) -> None:
    with repo.transaction() as s:
        common = repo.insert_application(s, "master", pkg="com.common.app", name="Common", common=True)
        common_id = common.id
    version = add_version(super_ctx, common_id, "1.0")
    config_a = make_configuration("A")
    config_b = make_configuration("B")

    catalog.update_version_links(ctx_a, version.id, [VersionLinkItem(configuration_id=config_a, action=LinkAction.INSTALL)])
    catalog.update_version_links(ctx_b, version.id, [VersionLinkItem(configuration_id=config_b, action=LinkAction.INSTALL)])
    catalog.update_version_links(ctx_a, version.id, [])

    assert _version_links("A", version.id) == {}
    assert _version_links("B", version.id) == {config_b: LinkAction.INSTALL}


def test_new_version_moves_auto_update_links_and_main_app(ctx_a, upload, add_version, make_configuration, load) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0")
    auto_cfg = make_configuration("A", "Auto", main_app_version_id=app.version.id)
    pinned_cfg = make_configuration("A", "Pinned", main_app_version_id=app.version.id)
    catalog.update_application_links(
        ctx_a,
        app.application.id,
        [
            LinkItem(configuration_id=auto_cfg, action=LinkAction.INSTALL, auto_update=True),
            LinkItem(configuration_id=pinned_cfg, action=LinkAction.INSTALL),
        ],
    )

    v2 = add_version(ctx_a, app.application.id, "2.0")

    by_configuration = {link.configuration_id: link.application_version_id for link in _app_links("A", app.application.id)}
    assert by_configuration == {auto_cfg: v2.id, pinned_cfg: app.version.id}
    assert load(Configuration, auto_cfg).main_app_version_id == v2.id
    assert load(Configuration, pinned_cfg).main_app_version_id == app.version.id


def test_auto_update_reaches_every_tenant_of_common_application(ctx_a, ctx_b, super_ctx, add_version, make_configuration, load) -> None:
    with repo.transaction() as s:
        common_id = repo.insert_application(s, "master", pkg="com.common.app", name="Common", common=True).id
    v1 = add_version(super_ctx, common_id, "1.0")
    config_a = make_configuration("A", content_app_version_id=v1.id)
    config_b = make_configuration("B")
    catalog.update_application_links(ctx_a, common_id, [LinkItem(configuration_id=config_a, action=LinkAction.INSTALL, auto_update=True)])
    catalog.update_application_links(ctx_b, common_id, [LinkItem(configuration_id=config_b, action=LinkAction.INSTALL, auto_update=True)])

    v2 = add_version(super_ctx, common_id, "2.0")

    assert [link.application_version_id for link in _app_links("A", common_id)] == [v2.id]
    assert [link.application_version_id for link in _app_links("B", common_id)] == [v2.id]
    assert load(Configuration, config_a).content_app_version_id == v2.id
    assert load(Configuration, config_a).content_app_valid is True


def test_recheck_sets_validity_flags(ctx_a, upload, make_configuration, load) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0")
    configuration_id = make_configuration(
        "A", main_app_version_id=app.version.id, content_app_version_id=app.version.id, kiosk_mode=True
    )
    with repo.transaction() as s:
        assert links.recheck_configurations(s, "A") == 1
    stored = load(Configuration, configuration_id)
    assert (stored.main_app_valid, stored.content_app_valid, stored.kiosk_mode_valid) == (False, False, False)

    catalog.update_version_links(ctx_a, app.version.id, [VersionLinkItem(configuration_id=configuration_id, action=LinkAction.INSTALL)])
    stored = load(Configuration, configuration_id)
    assert (stored.main_app_valid, stored.content_app_valid, stored.kiosk_mode_valid) == (True, True, True)

    with repo.transaction() as s:
        assert links.recheck_configurations(s, "A") == 0


def test_kiosk_mode_without_content_app_is_invalid(make_configuration, load) -> None:
    configuration_id = make_configuration("A", kiosk_mode=True)
    with repo.transaction() as s:
        links.recheck_configurations(s, "A")
    stored = load(Configuration, configuration_id)
    assert stored.main_app_valid is True
    assert stored.kiosk_mode_valid is False


def test_get_application_configurations_lists_every_configuration(ctx_a, upload, make_configuration) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0").application
    linked = make_configuration("A", "Linked")
    make_configuration("A", "Unlinked")
    make_configuration("B", "Foreign")
    catalog.update_application_links(ctx_a, app.id, [LinkItem(configuration_id=linked, action=LinkAction.PERMIT)])

    out = links.get_application_configurations(ctx_a, app.id)
    assert [(c.configuration_name, c.action) for c in out] == [("Linked", LinkAction.PERMIT), ("Unlinked", None)]


def test_get_application_version_configurations(ctx_a, upload, make_configuration) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0")
    configuration_id = make_configuration("A")
    catalog.update_version_links(ctx_a, app.version.id, [VersionLinkItem(configuration_id=configuration_id, action=LinkAction.PROHIBIT)])

    [out] = links.get_application_version_configurations(ctx_a, app.version.id)
    assert out.configuration_id == configuration_id
    assert out.application_version_id == app.version.id
    assert out.action == LinkAction.PROHIBIT


def test_link_rows_are_tenant_scoped(ctx_a, upload, make_configuration) -> None:
    app = upload(ctx_a, "com.acme.app", "1.0")
    configuration_id = make_configuration("A")
    catalog.update_application_links(ctx_a, app.application.id, [LinkItem(configuration_id=configuration_id, action=LinkAction.INSTALL)])
    catalog.update_version_links(ctx_a, app.version.id, [VersionLinkItem(configuration_id=configuration_id, action=LinkAction.INSTALL)])
    with repo.transaction() as s:
        assert repo.list_application_links(s, "B", app.application.id) == []
        assert repo.list_version_links(s, "B", app.version.id) == []
        assert all(isinstance(link, ConfigurationApplication) for link in repo.list_application_links(s, "A", app.application.id))
        assert all(isinstance(link, ConfigurationApplicationVersion) for link in repo.list_version_links(s, "A", app.version.id))
