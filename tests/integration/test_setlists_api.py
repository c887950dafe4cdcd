"""Tests for the setlist endpoints."""

from band_api import BandApi


class TestSetlistCrud:
    """Create, list, rename, duplicate, delete."""

    async def test_first_listing_creates_the_catalog(self, band: BandApi) -> None:
        response = await band.client.get(f"{band.prefix}/setlists")

        body = response.json()
        assert len(body["setlists"]) == 1
        catalog = body["setlists"][0]
        assert catalog["is_catalog"] is True
        assert catalog["name"] == "Catalog"
        assert body["catalog_id"] == catalog["id"]

    async def test_catalog_listed_first(self, band: BandApi) -> None:
        await band.create_setlist("Zebra Gig")
        await band.create_setlist("Acoustic")

        body = (await band.client.get(f"{band.prefix}/setlists")).json()

        assert [s["name"] for s in body["setlists"]] == ["Catalog", "Acoustic", "Zebra Gig"]

    async def test_create_rejects_blank_and_reserved_names(self, band: BandApi) -> None:
        blank = await band.client.post(f"{band.prefix}/setlists", json={"name": "   "})
        reserved = await band.client.post(f"{band.prefix}/setlists", json={"name": "all songs"})

        assert blank.status_code == 400
        assert blank.json()["kind"] == "validation"
        assert reserved.status_code == 400

    async def test_rename(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")

        response = await band.client.patch(
            f"{band.prefix}/setlists/{gig['id']}", json={"name": "  Friday   Gig "}
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Friday Gig"

    async def test_catalog_cannot_be_renamed_or_deleted(self, band: BandApi) -> None:
        catalog_id = await band.catalog_id()

        renamed = await band.client.patch(
            f"{band.prefix}/setlists/{catalog_id}", json={"name": "Mine"}
        )
        deleted = await band.client.delete(f"{band.prefix}/setlists/{catalog_id}")

        for response in (renamed, deleted):
            assert response.status_code == 409
            body = response.json()
            assert body["kind"] == "catalog_protected"
            assert body["user_message"] == "The Catalog cannot be renamed or deleted."

    async def test_delete_keeps_songs_in_catalog(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        await band.add_song(gig["id"], "Paranoid", "Black Sabbath")

        response = await band.client.delete(f"{band.prefix}/setlists/{gig['id']}")

        assert response.status_code == 204
        assert await band.titles(await band.catalog_id()) == ["Paranoid"]
        missing = await band.client.get(f"{band.prefix}/setlists/{gig['id']}/songs")
        assert missing.status_code == 404

    async def test_duplicate_copies_order_and_overrides(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        first = await band.add_song(gig["id"], "One", "Metallica", bpm=100)
        await band.add_song(gig["id"], "Two", "Metallica")
        await band.client.patch(
            f"{band.prefix}/setlists/{gig['id']}/songs/{first['song_id']}", json={"bpm": 90}
        )

        response = await band.client.post(f"{band.prefix}/setlists/{gig['id']}/duplicate")

        assert response.status_code == 201
        copy = response.json()
        assert copy["name"] == "Gig (Copy)"
        assert copy["song_count"] == 2
        songs = await band.songs(copy["id"])
        assert [s["title"] for s in songs] == ["One", "Two"]
        assert songs[0]["bpm"] == 90

    async def test_other_bands_list_is_not_found(
        self, band: BandApi, other_band: BandApi
    ) -> None:
        theirs = await other_band.create_setlist("Their Gig")

        response = await band.client.get(f"{band.prefix}/setlists/{theirs['id']}/songs")

        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"


class TestSetlistSongs:
    """Adding, removing, overrides and order."""

    async def test_add_goes_to_catalog_first(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")

        result = await band.add_song(gig["id"], "Enter Sandman", "Metallica", bpm=123)

        assert result["success"] is True
        assert result["was_already_in_catalog"] is False
        assert await band.titles(result["catalog_id"]) == ["Enter Sandman"]
        assert await band.titles(gig["id"]) == ["Enter Sandman"]

    async def test_adding_twice_is_not_an_error(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        await band.add_song(gig["id"], "Enter Sandman", "Metallica")

        again = await band.add_song(gig["id"], "enter sandman", "METALLICA")

        assert again["was_already_in_list"] is True
        assert await band.titles(gig["id"]) == ["Enter Sandman"]

    async def test_add_by_id(self, band: BandApi) -> None:
        first = await band.create_setlist("First")
        second = await band.create_setlist("Second")
        added = await band.add_song(first["id"], "Lithium", "Nirvana")

        response = await band.client.post(
            f"{band.prefix}/setlists/{second['id']}/songs", json={"song_id": added["song_id"]}
        )

        assert response.status_code == 200
        assert response.json()["was_already_in_catalog"] is True

    async def test_add_needs_id_or_details(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")

        response = await band.client.post(
            f"{band.prefix}/setlists/{gig['id']}/songs", json={"title": "Only Title"}
        )

        assert response.status_code == 400

    async def test_remove(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        song = await band.add_song(gig["id"], "One", "Metallica")
        await band.add_song(gig["id"], "Two", "Metallica")
        url = f"{band.prefix}/setlists/{gig['id']}/songs/{song['song_id']}"

        first = await band.client.delete(url)
        second = await band.client.delete(url)

        assert first.status_code == 204
        assert second.status_code == 404
        songs = await band.songs(gig["id"])
        assert [(s["title"], s["position"]) for s in songs] == [("Two", 0)]
        assert len(await band.songs(song["catalog_id"])) == 2

    async def test_remove_from_catalog_needs_the_cascade_endpoint(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        song = await band.add_song(gig["id"], "One", "Metallica")

        response = await band.client.delete(
            f"{band.prefix}/setlists/{song['catalog_id']}/songs/{song['song_id']}"
        )

        assert response.status_code == 400

    async def test_overrides_set_and_clear(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        song = await band.add_song(gig["id"], "One", "Metallica", bpm=100, tuning="standard")
        url = f"{band.prefix}/setlists/{gig['id']}/songs/{song['song_id']}"

        set_response = await band.client.patch(url, json={"bpm": 96, "tuning": "drop_d"})
        row = (await band.songs(gig["id"]))[0]
        catalog_row = (await band.songs(song["catalog_id"]))[0]

        assert set_response.status_code == 200
        assert set_response.json()["bpm_override"] == 96
        assert (row["bpm"], row["tuning"]) == (96, "drop_d")
        assert (catalog_row["bpm"], catalog_row["tuning"]) == (100, "standard_e")

        cleared = await band.client.patch(url, json={"bpm": None})

        assert cleared.json()["bpm_override"] is None
        assert cleared.json()["tuning_override"] == "drop_d"
        assert (await band.songs(gig["id"]))[0]["bpm"] == 100

    async def test_reorder(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        ids = [(await band.add_song(gig["id"], t, "Band"))["song_id"] for t in ("A", "B", "C")]

        response = await band.client.put(
            f"{band.prefix}/setlists/{gig['id']}/order", json={"song_ids": ids[::-1]}
        )

        assert response.status_code == 200
        assert [s["title"] for s in response.json()["songs"]] == ["C", "B", "A"]
        assert await band.titles(gig["id"]) == ["C", "B", "A"]

    async def test_reorder_must_be_complete(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        song = await band.add_song(gig["id"], "A", "Band")
        await band.add_song(gig["id"], "B", "Band")

        response = await band.client.put(
            f"{band.prefix}/setlists/{gig['id']}/order", json={"song_ids": [song["song_id"]]}
        )

        assert response.status_code == 400
        assert await band.titles(gig["id"]) == ["A", "B"]

    async def test_catalog_is_sorted_by_artist(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        await band.add_song(gig["id"], "Song B", "Zappa")
        await band.add_song(gig["id"], "Song A", "ABBA")

        assert await band.titles(await band.catalog_id()) == ["Song A", "Song B"]

    async def test_sort_mode_groups_by_tuning(self, band: BandApi) -> None:
        gig = await band.create_setlist("Gig")
        await band.add_song(gig["id"], "Low", "Band", tuning="drop_d")
        await band.add_song(gig["id"], "Normal", "Band", tuning="standard")

        manual = await band.songs(gig["id"])
        grouped = await band.songs(gig["id"], sort_mode="standard")

        assert [s["title"] for s in manual] == ["Low", "Normal"]
        assert [s["title"] for s in grouped] == ["Normal", "Low"]
