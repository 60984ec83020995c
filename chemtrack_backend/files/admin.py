# files/admin.py

from django.contrib import admin

from files.models import File, FileComponent, Folder


@admin.register(Folder)
class FolderAdmin(admin.ModelAdmin):
    list_display = ("name", "parent", "created_at")
    search_fields = ("name",)


class FileComponentInline(admin.TabularInline):
    model = FileComponent
    extra = 0
    autocomplete_fields = ("item",)


@admin.register(File)
class FileAdmin(admin.ModelAdmin):
    list_display = ("file_name", "folder", "solution_ref", "recipe_qty", "recipe_unit")
    list_filter = ("folder",)
    search_fields = ("file_name", "description")
    readonly_fields = ("created_at", "updated_at")
    autocomplete_fields = ("product_ref", "solution_ref")
    inlines = [FileComponentInline]
