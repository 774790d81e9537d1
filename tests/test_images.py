from shopcore.utils.images import (
    clean_image_urls,
    images_equal,
    join_image_urls,
    merge_images,
    process_image_url,
    separate_main_and_variant_images,
    smart_split_urls,
)


DATA_URI = "data:image/png;base64,iVBORw0KGgo="


def test_split_keeps_data_uri_payload():
    assert smart_split_urls(f"/a.jpg, {DATA_URI} ,https://cdn/x.png") == ["/a.jpg", DATA_URI, "https://cdn/x.png"]
    assert smart_split_urls(["/a.jpg,/b.jpg", "/c.jpg"]) == ["/a.jpg", "/b.jpg", "/c.jpg"]
    assert smart_split_urls(None) == []
    assert smart_split_urls(" , ") == []


def test_process_image_url():
    assert process_image_url("img/a.jpg") == "/img/a.jpg"
    assert process_image_url("//cdn/a.jpg") == "//cdn/a.jpg"
    assert process_image_url("  ") is None
    assert process_image_url("data:text/plain;base64,AAAA") is None
    assert process_image_url(DATA_URI) == DATA_URI


def test_equality_ignores_leading_slash_but_not_for_data_uris():
    assert images_equal("a.jpg", "/a.jpg")
    assert not images_equal(DATA_URI, DATA_URI + "x")


def test_merge_and_clean_deduplicate():
    assert merge_images(["/a.jpg"], ["a.jpg", "/b.jpg", ""]) == ["/a.jpg", "/b.jpg"]
    assert clean_image_urls(["a.jpg", {"url": "/a.jpg"}, {"url": None}, "/b.jpg"]) == ["/a.jpg", "/b.jpg"]
    assert join_image_urls(["a.jpg", "", DATA_URI]) == f"/a.jpg,{DATA_URI}"


def test_separate_main_and_variant_images():
    media = ["/main.jpg", {"url": "red.jpg"}, None]
    main, variant = separate_main_and_variant_images(media, ["/red.jpg"])
    assert main == ["/main.jpg"]
    assert variant == [{"url": "red.jpg"}]
