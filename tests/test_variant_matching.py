from shopcore.services.variant_matching import (
    build_attribute_groups,
    find_variant_by_all_attributes,
    find_variant_by_color_and_size,
    get_option_value,
    is_variant_compatible,
    variant_has_color,
    variant_has_value,
)


def _opt(key, value, value_id=None):
    return {"key": key, "value": value, "valueId": value_id}


RED_S = {"id": "v1", "stock": 5, "imageUrl": "/red.jpg", "options": [_opt("color", "Red", "val-red"), _opt("size", "S", "val-s")]}
RED_M = {"id": "v2", "stock": 0, "imageUrl": None, "options": [_opt("color", "Red", "val-red"), _opt("size", "M", "val-m")]}
BLUE_M = {"id": "v3", "stock": 3, "imageUrl": "", "options": [_opt("color", "Blue", "val-blue"), _opt("size", "M", "val-m")]}
VARIANTS = [RED_S, RED_M, BLUE_M]


def test_value_match_is_case_insensitive_or_by_value_id():
    assert variant_has_color(RED_S, "red")
    assert variant_has_color(RED_S, " RED ")
    assert variant_has_color(RED_S, "val-red")
    assert not variant_has_color(RED_S, "blue")
    assert not variant_has_value(RED_S, "size", "")


def test_variant_may_carry_several_values_for_one_key():
    multi = {"options": [_opt("color", "red"), _opt("colour", "white")]}
    assert variant_has_color(multi, "white")
    assert variant_has_color(multi, "red")


def test_plain_fields_count_as_options():
    plain = {"color": "Green", "size": "XL"}
    assert variant_has_value(plain, "size", "xl")
    assert variant_has_color(plain, "green")


def test_get_option_value_accepts_colour_alias():
    options = [{"attributeKey": "Colour", "value": "Navy"}, _opt("size", "S")]
    assert get_option_value(options, "color") == "Navy"
    assert get_option_value(options, "material") is None


def test_compatibility_ignores_blank_and_excluded_keys():
    assert is_variant_compatible(RED_S, {"color": "red", "size": "S"})
    assert not is_variant_compatible(RED_S, {"color": "red", "size": "M"})
    assert is_variant_compatible(RED_S, {"color": "red", "size": "M"}, exclude_key="size")
    assert is_variant_compatible(RED_S, {"color": "red", "size": ""})


def test_find_by_color_and_size():
    assert find_variant_by_color_and_size(VARIANTS, "red", "M") is RED_M
    assert find_variant_by_color_and_size(VARIANTS, None, "M") is RED_M
    assert find_variant_by_color_and_size(VARIANTS) is None


def test_best_match_prefers_variant_with_image():
    assert find_variant_by_all_attributes(VARIANTS, size="M") is RED_M
    with_image = dict(BLUE_M, imageUrl="/blue.jpg")
    assert find_variant_by_all_attributes([RED_M, with_image], size="M") is with_image


def test_best_match_falls_back_to_color_and_size_when_other_attributes_miss():
    found = find_variant_by_all_attributes(VARIANTS, color="blue", size="M", other={"material": "silk"})
    assert found is BLUE_M


def test_best_match_without_selection_is_first_in_stock_then_first():
    assert find_variant_by_all_attributes([RED_M, BLUE_M]) is BLUE_M
    sold_out = [dict(RED_M), dict(BLUE_M, stock=0)]
    assert find_variant_by_all_attributes(sold_out) is sold_out[0]
    assert find_variant_by_all_attributes([]) is None


PRODUCT = {
    "productAttributes": [
        {
            "attribute": {
                "key": "color",
                "values": [
                    {"id": "val-red", "value": "Red", "label": "Red"},
                    {"id": "val-blue", "value": "Blue", "label": "Blue", "colors": ["#00f"]},
                    {"id": "val-green", "value": "Green", "label": "Green"},
                ],
            }
        },
        {"attribute": {"key": "size", "values": [{"id": "val-s", "value": "S"}, {"id": "val-m", "value": "M"}]}},
    ],
    "variants": VARIANTS + [{"id": "v4", "stock": 2, "options": [_opt("material", "Cotton")]}],
}


def _by_value(groups, key):
    return {gv.value: gv for gv in groups[key]}


def test_groups_without_selection_sum_all_stock():
    groups = build_attribute_groups(PRODUCT)
    colors = _by_value(groups, "color")
    assert colors["Red"].stock == 5
    assert colors["Red"].variant_ids == ["v1", "v2"]
    assert colors["Blue"].stock == 3
    assert colors["Green"].stock == 0
    assert colors["Green"].to_dict()["available"] is False
    assert _by_value(groups, "material")["Cotton"].stock == 2


def test_groups_count_only_variants_compatible_with_other_selections():
    groups = build_attribute_groups(PRODUCT, selected_color="red")
    sizes = _by_value(groups, "size")
    assert sizes["S"].stock == 5
    assert sizes["M"].stock == 0
    assert sizes["M"].variant_ids == ["v2"]
    # the color axis itself is not narrowed by the selected color
    assert _by_value(groups, "color")["Blue"].stock == 3


def test_groups_under_size_selection():
    colors = _by_value(build_attribute_groups(PRODUCT, selected_size="M"), "color")
    assert colors["Red"].stock == 0
    assert colors["Blue"].stock == 3


def test_color_value_borrows_variant_image():
    colors = _by_value(build_attribute_groups(PRODUCT), "color")
    assert colors["Red"].image_url == "/red.jpg"
    assert colors["Blue"].image_url is None
    assert colors["Blue"].colors == ["#00f"]
